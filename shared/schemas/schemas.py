"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the platform.
Rows read from the store are validated through these models before they
leave the API, so malformed records fail loudly at the boundary.
"""

import datetime as dt
import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from config.settings import settings
from shared.models.models import (
    CLASS_CATEGORIES,
    ApplicationStatus,
    BookingStatus,
    TransactionType,
)


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# ── Profile ───────────────────────────────────────────────────

class ProfileResponse(BaseSchema):
    id: uuid.UUID
    full_name: str
    email: str
    city: str
    country: str
    bio: Optional[str]
    avatar_url: Optional[str]
    host_verified: bool
    role: str
    created_at: dt.datetime


class ProfileUpdateRequest(BaseSchema):
    full_name: Optional[str] = Field(None, min_length=2, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)
    avatar_url: Optional[str] = None


class HostSummary(BaseSchema):
    id: uuid.UUID
    full_name: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None


# ── Credits ───────────────────────────────────────────────────

class CreditsResponse(BaseSchema):
    topped_up_balance: int
    teaching_balance: int
    total_balance: int
    updated_at: Optional[dt.datetime] = None


class TopUpRequest(BaseSchema):
    amount_pounds: float = Field(..., gt=0, description="Simulated purchase amount in GBP")


class TopUpResponse(BaseSchema):
    credits_added: int
    credits: CreditsResponse


class CreditTransactionResponse(BaseSchema):
    id: uuid.UUID
    type: TransactionType
    amount: int
    class_id: Optional[uuid.UUID]
    created_at: dt.datetime


# ── Auth / Session ────────────────────────────────────────────

class SessionUser(BaseSchema):
    id: uuid.UUID
    email: str


class SessionResponse(BaseSchema):
    """Current user + profile + balances in one record."""
    user: SessionUser
    profile: ProfileResponse
    credits: CreditsResponse
    is_admin: bool = False


# ── Classes ───────────────────────────────────────────────────

class ClassCreateRequest(BaseSchema):
    title: str = Field(..., max_length=255)
    description: str
    category: str
    address: str
    date: dt.date
    time: dt.time
    duration: int = Field(..., description="Length in hours")
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    cost_credits: Optional[int] = Field(None, ge=1, le=100)
    max_participants: Optional[int] = Field(None, ge=1, le=50)
    who_for: Optional[str] = Field(None, max_length=2000)
    prerequisites: Optional[str] = Field(None, max_length=2000)
    walk_away_with: Optional[str] = Field(None, max_length=2000)
    what_to_bring: Optional[str] = Field(None, max_length=2000)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if len(v.strip()) < 5:
            raise ValueError("Title must be at least 5 characters")
        return v.strip()

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if len(v.strip()) < 20:
            raise ValueError("Description must be at least 20 characters")
        return v.strip()

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        if v not in CLASS_CATEGORIES:
            raise ValueError("Please select a category")
        return v

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if len(v.strip()) < 5:
            raise ValueError("Address is required")
        return v.strip()

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Duration must be at least 1 hour")
        if v > 8:
            raise ValueError("Duration cannot exceed 8 hours")
        return v


class ClassSummary(BaseSchema):
    id: uuid.UUID
    host_id: uuid.UUID
    title: str
    category: str
    city: str
    country: str
    date: dt.date
    time: dt.time
    duration: int
    cost_credits: int
    max_participants: int
    thumbnail_url: Optional[str]
    seats_taken: int = 0
    spots_left: int = 0
    is_full: bool = False
    host: Optional[HostSummary] = None


class AttendeeResponse(BaseSchema):
    user_id: uuid.UUID
    full_name: str
    avatar_url: Optional[str] = None


class ClassDetailResponse(ClassSummary):
    description: str
    photo_urls: Optional[List[str]] = None
    who_for: List[str] = []
    prerequisites: List[str] = []
    walk_away_with: List[str] = []
    what_to_bring: List[str] = []
    is_booked: bool = False
    is_host: bool = False
    # Only revealed to booked attendees and the host
    address: Optional[str] = None
    attendees: Optional[List[AttendeeResponse]] = None


class ClassListResponse(BaseSchema):
    items: List[ClassSummary]
    total: int
    page: int
    page_size: int
    pages: int


class ClassScheduleDay(BaseSchema):
    date: dt.date
    classes: List[ClassSummary]


class PhotoUploadResponse(BaseSchema):
    thumbnail_url: str
    photo_urls: List[str]


class UserClassesResponse(BaseSchema):
    joined: List[ClassSummary]
    hosted: List[ClassSummary]


# ── Booking ───────────────────────────────────────────────────

class BookingCreateRequest(BaseSchema):
    class_id: uuid.UUID


class BookingResponse(BaseSchema):
    id: uuid.UUID
    class_id: uuid.UUID
    user_id: uuid.UUID
    status: BookingStatus
    booked_at: dt.datetime


class BookingQuoteResponse(BaseSchema):
    """Everything the confirmation dialog shows before the user commits."""
    class_id: uuid.UUID
    title: str
    date: dt.date
    time: dt.time
    duration: int
    city: str
    country: str
    host_name: str
    cost_credits: int
    seats_taken: int
    spots_left: int
    teaching_balance: int
    topped_up_balance: int
    total_balance: int
    from_teaching: int
    from_topped_up: int
    remaining_balance: int


class BookingConfirmationResponse(BaseSchema):
    booking: BookingResponse
    credits: CreditsResponse
    from_teaching: int
    from_topped_up: int
    seats_taken: int
    spots_left: int


class MyBookingResponse(BookingResponse):
    klass: ClassSummary


# ── Host Applications ─────────────────────────────────────────

class ExperienceItem(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    years: Optional[str] = Field(None, pattern=r"^\d+$")


class ProofLink(BaseSchema):
    label: str = Field(..., min_length=1, max_length=100)
    url: HttpUrl


class HostApplicationCreate(BaseSchema):
    bio: str
    teach_ideas: str
    experiences: Optional[List[ExperienceItem]] = None
    proof_links: Optional[List[ProofLink]] = None

    @field_validator("bio")
    @classmethod
    def validate_bio(cls, v: str) -> str:
        if len(v.strip()) < 30:
            raise ValueError("Please write at least 2–3 sentences.")
        return v.strip()

    @field_validator("teach_ideas")
    @classmethod
    def validate_teach_ideas(cls, v: str) -> str:
        if len(v.strip()) < 30:
            raise ValueError("Please include 2–3 example class ideas with outcomes.")
        return v.strip()


class HostApplicationResponse(BaseSchema):
    id: uuid.UUID
    user_id: uuid.UUID
    bio: str
    teach_ideas: str
    experiences: Optional[List[dict]] = None
    proof_links: Optional[List[dict]] = None
    status: ApplicationStatus
    rejection_feedback: Optional[str] = None
    submitted_at: dt.datetime
    reviewed_at: Optional[dt.datetime] = None


class ApplicantSummary(BaseSchema):
    full_name: str
    email: str
    city: str
    country: str


class AdminApplicationResponse(HostApplicationResponse):
    applicant: ApplicantSummary


class AdminApplicationQueue(BaseSchema):
    pending: List[AdminApplicationResponse]
    reviewed: List[AdminApplicationResponse]


class RejectApplicationRequest(BaseSchema):
    feedback: str

    @field_validator("feedback")
    @classmethod
    def validate_feedback(cls, v: str) -> str:
        minimum = settings.REJECTION_FEEDBACK_MIN_LENGTH
        if len(v.strip()) < minimum:
            raise ValueError(f"Please provide rejection feedback (minimum {minimum} characters).")
        return v.strip()


class AdminAccessResponse(BaseSchema):
    is_admin: bool


# ── Learning Interests ────────────────────────────────────────

class InterestCreateRequest(BaseSchema):
    interest: str

    @field_validator("interest")
    @classmethod
    def validate_interest(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 30:
            raise ValueError("Please enter an interest (max 30 characters).")
        return v


class InterestResponse(BaseSchema):
    id: uuid.UUID
    interest: str
    created_at: dt.datetime


class PopularInterestsResponse(BaseSchema):
    interests: List[str]


# ── Generic ───────────────────────────────────────────────────

class MessageResponse(BaseSchema):
    message: str
    success: bool = True
