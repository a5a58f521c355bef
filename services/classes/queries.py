"""
services/classes/queries.py
Read helpers shared by the class, booking and user routers:
seat counts, host lookups and ClassSummary assembly.
"""

import re
import uuid
from typing import Iterable, List, Optional

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Booking, Class, Profile
from shared.schemas.schemas import ClassSummary, HostSummary

_BULLET_SPLIT = re.compile(r"\n|•|-\s+")


def parse_to_bullets(text: Optional[str]) -> List[str]:
    """Split free text on newlines, "•" markers or "- " dashes into list items."""
    if not text:
        return []
    return [item.strip() for item in _BULLET_SPLIT.split(text) if item.strip()]


async def get_class_or_404(class_id: uuid.UUID, db: AsyncSession, for_update: bool = False) -> Class:
    query = select(Class).where(Class.id == class_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    klass = result.scalar_one_or_none()
    if not klass:
        raise HTTPException(status_code=404, detail="Class not found")
    return klass


async def count_bookings(db: AsyncSession, class_id: uuid.UUID) -> int:
    return await db.scalar(
        select(func.count(Booking.id)).where(Booking.class_id == class_id)
    ) or 0


async def seat_counts(db: AsyncSession, class_ids: Iterable[uuid.UUID]) -> dict:
    ids = list(class_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(Booking.class_id, func.count(Booking.id))
        .where(Booking.class_id.in_(ids))
        .group_by(Booking.class_id)
    )
    return {class_id: count for class_id, count in result.all()}


async def hosts_by_id(db: AsyncSession, host_ids: Iterable[uuid.UUID]) -> dict:
    ids = list(set(host_ids))
    if not ids:
        return {}
    result = await db.execute(select(Profile).where(Profile.id.in_(ids)))
    return {p.id: p for p in result.scalars()}


def build_summary(klass: Class, seats_taken: int, host: Optional[Profile]) -> ClassSummary:
    return ClassSummary(
        id=klass.id,
        host_id=klass.host_id,
        title=klass.title,
        category=klass.category,
        city=klass.city,
        country=klass.country,
        date=klass.date,
        time=klass.time,
        duration=klass.duration,
        cost_credits=klass.cost_credits,
        max_participants=klass.max_participants,
        thumbnail_url=klass.thumbnail_url,
        seats_taken=seats_taken,
        spots_left=max(0, klass.max_participants - seats_taken),
        is_full=seats_taken >= klass.max_participants,
        host=HostSummary.model_validate(host) if host else None,
    )


async def summarize(db: AsyncSession, classes: List[Class]) -> List[ClassSummary]:
    """Attach host info and seat counts to a batch of classes, preserving order."""
    seats = await seat_counts(db, (c.id for c in classes))
    hosts = await hosts_by_id(db, (c.host_id for c in classes))
    return [build_summary(c, seats.get(c.id, 0), hosts.get(c.host_id)) for c in classes]
