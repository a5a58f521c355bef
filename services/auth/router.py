"""
services/auth/router.py
Session endpoints. Sign-up and sign-in happen at the identity service;
this API verifies its access tokens, provisions the Profile + Credits
rows on first sight, and deny-lists tokens on sign-out.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from services.credits.router import credits_response
from shared.middleware.auth import TokenData, get_token_data, has_role
from shared.models.models import AppRole, Credits, Profile
from shared.schemas.schemas import (
    MessageResponse,
    ProfileResponse,
    SessionResponse,
    SessionUser,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ── Helper ────────────────────────────────────────────────────

async def _get_or_create_profile(db: AsyncSession, token: TokenData) -> Profile:
    """
    Get the caller's profile, creating it (with an empty Credits row) from
    the sign-up metadata if this is the first authenticated request.
    """
    result = await db.execute(select(Profile).where(Profile.id == token.user_id))
    profile = result.scalar_one_or_none()
    if profile:
        return profile

    metadata = token.metadata
    profile = Profile(
        id=token.user_id,
        email=token.email,
        full_name=metadata.get("full_name") or token.email.split("@")[0] or "Member",
        city=metadata.get("city") or "",
        country=metadata.get("country") or "",
    )
    db.add(profile)
    db.add(Credits(user_id=token.user_id, topped_up_balance=0, teaching_balance=0))
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent first request provisioned it already
        await db.rollback()
        result = await db.execute(select(Profile).where(Profile.id == token.user_id))
        existing = result.scalar_one_or_none()
        if existing is None:
            raise
        return existing

    logger.info(f"Provisioned profile for user {token.user_id}")
    return profile


# ── Endpoints ─────────────────────────────────────────────────

@router.get("/session", response_model=SessionResponse, summary="Current user, profile and balances")
async def get_session(
    token: TokenData = Depends(get_token_data),
    db: AsyncSession = Depends(get_db),
):
    """
    The one record the client refreshes after any mutation:
    identity, profile, both credit buckets and whether the admin area is open.
    """
    profile = await _get_or_create_profile(db, token)
    credits = await db.scalar(select(Credits).where(Credits.user_id == profile.id))

    return SessionResponse(
        user=SessionUser(id=profile.id, email=token.email or profile.email),
        profile=ProfileResponse.model_validate(profile),
        credits=credits_response(credits),
        is_admin=await has_role(db, profile.id, AppRole.ADMIN),
    )


@router.post("/logout", response_model=MessageResponse, summary="Logout user")
async def logout(
    token: TokenData = Depends(get_token_data),
    redis=Depends(get_redis),
):
    """Add the access token's JTI to the Redis deny-list until it expires."""
    if token.jti and token.ttl > 0:
        await RedisCache(redis).revoke_token(token.jti, token.ttl)
    logger.info(f"User {token.user_id} signed out")
    return MessageResponse(message="Logged out successfully")
