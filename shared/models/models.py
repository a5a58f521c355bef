"""
shared/models/models.py
All SQLAlchemy ORM models for the table marketplace.
UUID primary keys throughout; enum values are stored in lowercase as the
browser client reads them.
"""

import datetime as dt
import uuid
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from config.database import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _enum(enum_cls: type[PyEnum], name: str) -> Enum:
    """Store enum *values* ("pending") rather than member names ("PENDING")."""
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )


JSONType = JSON().with_variant(JSONB(), "postgresql")


# ── Enumerations ──────────────────────────────────────────────

class AppRole(str, PyEnum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"


class BookingStatus(str, PyEnum):
    CONFIRMED = "confirmed"


class TransactionType(str, PyEnum):
    TOP_UP = "top_up"
    BOOKING = "booking"


class ApplicationStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


CLASS_CATEGORIES = (
    "Cooking",
    "Arts & Crafts",
    "Languages",
    "Sports & Fitness",
    "Music",
    "Technology",
    "Gardening",
    "Writing",
    "Photography",
    "Other",
)


# ── Models ────────────────────────────────────────────────────

class Profile(Base):
    """One per user. The id is the identity-service user id."""
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    host_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    role: Mapped[str] = mapped_column(String(50), default="user", nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships (declared for metadata; queries join explicitly)
    credits: Mapped[Optional["Credits"]] = relationship(back_populates="profile", uselist=False)
    hosted_classes: Mapped[List["Class"]] = relationship(back_populates="host")

    def __repr__(self) -> str:
        return f"<Profile {self.email} host_verified={self.host_verified}>"


class UserRoleAssignment(Base):
    """Backs the has_role(user_id, role) lookup used to gate the admin area."""
    __tablename__ = "user_roles"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[AppRole] = mapped_column(_enum(AppRole, "app_role"), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)


class Credits(Base):
    """
    Two-bucket balance, one-to-one with Profile.
    Spendable balance = topped_up_balance + teaching_balance.
    """
    __tablename__ = "credits"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    topped_up_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    teaching_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    profile: Mapped["Profile"] = relationship(back_populates="credits")


class Class(Base):
    """A scheduled in-person session run by a verified host."""
    __tablename__ = "classes"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    host_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # hours
    cost_credits: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photo_urls: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    # Descriptive fields rendered as bullet lists
    who_for: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prerequisites: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    walk_away_with: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    what_to_bring: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    host: Mapped["Profile"] = relationship(back_populates="hosted_classes")
    bookings: Mapped[List["Booking"]] = relationship(back_populates="klass")

    __table_args__ = (
        Index("ix_classes_date_time", "date", "time"),
        Index("ix_classes_host_id", "host_id"),
    )

    def __repr__(self) -> str:
        return f"<Class {self.title!r} on {self.date}>"


class Booking(Base):
    """A seat in a class. One per (class, user)."""
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    class_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("classes.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[BookingStatus] = mapped_column(
        _enum(BookingStatus, "booking_status"), default=BookingStatus.CONFIRMED, nullable=False
    )
    booked_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    klass: Mapped["Class"] = relationship(back_populates="bookings")

    __table_args__ = (
        UniqueConstraint("class_id", "user_id", name="uq_bookings_class_user"),
        Index("ix_bookings_user_id", "user_id"),
    )


class CreditTransaction(Base):
    """Append-only log of balance changes. Amount is signed."""
    __tablename__ = "credit_transactions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[TransactionType] = mapped_column(
        _enum(TransactionType, "transaction_type"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    class_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("classes.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (Index("ix_credit_transactions_user_id", "user_id"),)


class HostApplication(Base):
    """
    A request to become a verified host.
    pending → approved | rejected; both outcomes are terminal.
    """
    __tablename__ = "host_applications"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    bio: Mapped[str] = mapped_column(Text, nullable=False)
    teach_ideas: Mapped[str] = mapped_column(Text, nullable=False)
    experiences: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    # e.g. [{"name": "Pastry chef", "years": "4"}]
    proof_links: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    # e.g. [{"label": "Portfolio", "url": "https://..."}]
    status: Mapped[ApplicationStatus] = mapped_column(
        _enum(ApplicationStatus, "application_status"),
        default=ApplicationStatus.PENDING,
        nullable=False,
    )
    rejection_feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    reviewed_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (Index("ix_host_applications_user_submitted", "user_id", "submitted_at"),)


class LearningInterest(Base):
    """Free-text "what do you want to learn?" submissions from the landing page."""
    __tablename__ = "learning_interest"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    interest: Mapped[str] = mapped_column(String(30), nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
