"""
services/classes/router.py
Class discovery, detail, creation by verified hosts, and photo uploads.
"""

import logging
import mimetypes
import uuid
from collections import OrderedDict
from typing import Optional
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.booking.flow import has_booked
from services.classes.queries import (
    build_summary,
    count_bookings,
    get_class_or_404,
    parse_to_bullets,
    summarize,
)
from shared.middleware.auth import get_current_user, get_optional_user, require_verified_host
from shared.models.models import Booking, Class, Profile, utcnow
from shared.schemas.schemas import (
    AttendeeResponse,
    ClassCreateRequest,
    ClassDetailResponse,
    ClassListResponse,
    ClassScheduleDay,
    PhotoUploadResponse,
)
from shared.utils.storage import StorageClient, StorageError, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/classes", tags=["Classes"])

MAX_PHOTO_BYTES = 5 * 1024 * 1024


def _filtered(query, category: Optional[str], city: Optional[str], upcoming: bool):
    if category:
        query = query.where(Class.category == category)
    if city:
        query = query.where(func.lower(Class.city) == city.lower())
    if upcoming:
        query = query.where(Class.date >= utcnow().date())
    return query


# ── Discovery ─────────────────────────────────────────────────

@router.get("", response_model=ClassListResponse)
async def list_classes(
    category: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    upcoming: bool = Query(False, description="Hide classes dated before today"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """All classes ordered by date then time, with host and seat counts."""
    query = _filtered(select(Class), category, city, upcoming)
    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    result = await db.execute(
        query.order_by(Class.date.asc(), Class.time.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = await summarize(db, list(result.scalars()))
    return ClassListResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        pages=-(-total // page_size),  # ceiling division
    )


@router.get("/schedule", response_model=list[ClassScheduleDay])
async def class_schedule(
    category: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    upcoming: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """Classes grouped by date, as the landing page lists them."""
    query = _filtered(select(Class), category, city, upcoming)
    result = await db.execute(query.order_by(Class.date.asc(), Class.time.asc()))
    summaries = await summarize(db, list(result.scalars()))

    days: "OrderedDict" = OrderedDict()
    for summary in summaries:
        days.setdefault(summary.date, []).append(summary)
    return [ClassScheduleDay(date=day, classes=classes) for day, classes in days.items()]


@router.get("/{class_id}", response_model=ClassDetailResponse)
async def get_class(
    class_id: UUID,
    current_user: Optional[Profile] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Class detail. The exact address and the attendee list are only
    revealed to people who booked and to the host.
    """
    klass = await get_class_or_404(class_id, db)
    host = await db.get(Profile, klass.host_id)
    seats_taken = await count_bookings(db, klass.id)

    is_host = current_user is not None and current_user.id == klass.host_id
    is_booked = current_user is not None and await has_booked(db, current_user.id, klass.id)

    address, attendees = None, None
    if is_host or is_booked:
        address = klass.address
        result = await db.execute(
            select(Profile)
            .join(Booking, Booking.user_id == Profile.id)
            .where(Booking.class_id == klass.id)
            .order_by(Booking.booked_at.asc())
        )
        attendees = [
            AttendeeResponse(user_id=p.id, full_name=p.full_name, avatar_url=p.avatar_url)
            for p in result.scalars()
        ]

    summary = build_summary(klass, seats_taken, host)
    return ClassDetailResponse(
        **summary.model_dump(),
        description=klass.description,
        photo_urls=klass.photo_urls,
        who_for=parse_to_bullets(klass.who_for),
        prerequisites=parse_to_bullets(klass.prerequisites),
        walk_away_with=parse_to_bullets(klass.walk_away_with),
        what_to_bring=parse_to_bullets(klass.what_to_bring),
        is_booked=is_booked,
        is_host=is_host,
        address=address,
        attendees=attendees,
    )


# ── Hosting ───────────────────────────────────────────────────

@router.post("", response_model=ClassDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    data: ClassCreateRequest,
    current_user: Profile = Depends(require_verified_host),
    db: AsyncSession = Depends(get_db),
):
    """
    Publish a new session. City and country default to the host's profile;
    cost and capacity default to the platform standard.
    """
    payload = data.model_dump(exclude_none=True)
    payload.setdefault("city", current_user.city)
    payload.setdefault("country", current_user.country)
    payload.setdefault("cost_credits", settings.DEFAULT_CLASS_COST_CREDITS)
    payload.setdefault("max_participants", settings.DEFAULT_MAX_PARTICIPANTS)

    klass = Class(host_id=current_user.id, **payload)
    db.add(klass)
    await db.commit()

    logger.info(f"Host {current_user.id} created class {klass.id}")
    return await get_class(klass.id, current_user, db)


@router.post("/{class_id}/photo", response_model=PhotoUploadResponse)
async def upload_class_photo(
    class_id: UUID,
    file: UploadFile = File(...),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
):
    """Upload a photo to object storage; the first one becomes the thumbnail."""
    klass = await get_class_or_404(class_id, db)
    if klass.host_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the host can add photos")

    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=415, detail="Only image uploads are accepted")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(data) > MAX_PHOTO_BYTES:
        raise HTTPException(status_code=413, detail="Photo must be 5 MB or smaller")

    extension = mimetypes.guess_extension(content_type) or ".jpg"
    path = f"{current_user.id}/{klass.id}/{uuid.uuid4().hex}{extension}"
    try:
        await storage.upload(path, data, content_type)
    except (StorageError, httpx.HTTPError):
        raise HTTPException(status_code=502, detail="Photo upload failed")

    url = storage.get_public_url(path)
    klass.photo_urls = [*(klass.photo_urls or []), url]
    if not klass.thumbnail_url:
        klass.thumbnail_url = url
    await db.commit()

    return PhotoUploadResponse(thumbnail_url=klass.thumbnail_url, photo_urls=klass.photo_urls)
