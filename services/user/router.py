"""
services/user/router.py
Profile management and the "my classes" view.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.classes.queries import summarize
from shared.middleware.auth import get_current_user
from shared.models.models import Booking, Class, Profile
from shared.schemas.schemas import ProfileResponse, ProfileUpdateRequest, UserClassesResponse

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=ProfileResponse)
async def get_me(current_user: Profile = Depends(get_current_user)):
    """Return the currently authenticated user's profile."""
    return ProfileResponse.model_validate(current_user)


@router.put("/me", response_model=ProfileResponse)
async def update_me(
    data: ProfileUpdateRequest,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update profile fields (full_name, city, country, bio, avatar_url).
    Only non-None fields in the request body are updated.
    """
    updates = data.model_dump(exclude_none=True)
    if not updates:
        return ProfileResponse.model_validate(current_user)

    for field, value in updates.items():
        setattr(current_user, field, value)

    await db.commit()
    await db.refresh(current_user)
    return ProfileResponse.model_validate(current_user)


@router.get("/me/classes", response_model=UserClassesResponse)
async def get_my_classes(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Classes the user has joined and classes they host, both by date and time."""
    joined = await db.execute(
        select(Class)
        .join(Booking, Booking.class_id == Class.id)
        .where(Booking.user_id == current_user.id)
        .order_by(Class.date.asc(), Class.time.asc())
    )
    hosted = await db.execute(
        select(Class)
        .where(Class.host_id == current_user.id)
        .order_by(Class.date.asc(), Class.time.asc())
    )
    return UserClassesResponse(
        joined=await summarize(db, list(joined.scalars())),
        hosted=await summarize(db, list(hosted.scalars())),
    )
