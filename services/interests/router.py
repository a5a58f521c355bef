"""
services/interests/router.py
"What do you want to learn?" capture from the landing page.
"""

import logging
from collections import Counter
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from config.settings import settings
from shared.middleware.auth import get_optional_user
from shared.models.models import LearningInterest, Profile
from shared.schemas.schemas import (
    InterestCreateRequest,
    InterestResponse,
    PopularInterestsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/interests", tags=["Interests"])

POPULAR_CACHE_KEY = "interests:popular"
POPULAR_LIMIT = 3


@router.post("", response_model=InterestResponse, status_code=status.HTTP_201_CREATED)
async def submit_interest(
    data: InterestCreateRequest,
    current_user: Optional[Profile] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Anyone may submit; signed-in submissions are attributed."""
    interest = LearningInterest(
        interest=data.interest,
        user_id=current_user.id if current_user else None,
    )
    db.add(interest)
    await db.commit()

    await RedisCache(redis).delete(POPULAR_CACHE_KEY)
    return InterestResponse.model_validate(interest)


@router.get("/popular", response_model=PopularInterestsResponse)
async def popular_interests(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Top three interests among the most recent submissions (case-insensitive)."""
    cache = RedisCache(redis)
    cached = await cache.get(POPULAR_CACHE_KEY)
    if cached is not None:
        return PopularInterestsResponse(interests=cached)

    result = await db.execute(
        select(LearningInterest.interest)
        .order_by(LearningInterest.created_at.desc())
        .limit(settings.POPULAR_INTERESTS_SAMPLE)
    )
    counts = Counter(value.strip().lower() for value in result.scalars())
    interests = [value for value, _ in counts.most_common(POPULAR_LIMIT)]

    await cache.set(POPULAR_CACHE_KEY, interests)
    return PopularInterestsResponse(interests=interests)
