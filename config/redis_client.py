"""
config/redis_client.py
Async Redis client for caching, booking locks, JWT deny-list
and the unauthenticated rate limiter.
"""

import json
from typing import Any, Optional
import redis.asyncio as aioredis

from config.settings import settings


# ── Global client (initialized on startup) ───────────────────
redis_client: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    """Initialize the Redis connection pool."""
    global redis_client
    redis_client = aioredis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )
    # Test connection
    await redis_client.ping()


async def close_redis() -> None:
    """Close Redis connection pool."""
    global redis_client
    if redis_client:
        await redis_client.aclose()


def get_redis() -> aioredis.Redis:
    """FastAPI dependency to get Redis client."""
    if not redis_client:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return redis_client


# ── Cache Helpers ─────────────────────────────────────────────
class RedisCache:
    """Helper class for common Redis caching patterns."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    async def get(self, key: str) -> Optional[Any]:
        value = await self.client.get(key)
        if value:
            return json.loads(value)
        return None

    async def set(self, key: str, value: Any, ttl: int = settings.REDIS_CACHE_TTL) -> None:
        await self.client.setex(key, ttl, json.dumps(value, default=str))

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    # ── Booking Locks ────────────────────────────────────────
    async def lock_booking(self, class_id: str, user_id: str) -> bool:
        """
        Atomic lock on a (class, user) booking attempt using SET NX.
        Returns True if lock acquired, False if an attempt is already in flight.
        """
        key = f"booking_lock:{class_id}:{user_id}"
        result = await self.client.set(
            key,
            "1",
            ex=settings.REDIS_BOOKING_LOCK_TTL,
            nx=True,  # Only set if key doesn't exist
        )
        return result is True

    async def release_booking(self, class_id: str, user_id: str) -> None:
        await self.client.delete(f"booking_lock:{class_id}:{user_id}")

    # ── JWT Deny List ─────────────────────────────────────────
    async def revoke_token(self, jti: str, ttl_seconds: int) -> None:
        """Add JWT ID to deny list until it expires."""
        await self.client.setex(f"jwt_revoked:{jti}", ttl_seconds, "1")

    async def is_token_revoked(self, jti: str) -> bool:
        return await self.client.exists(f"jwt_revoked:{jti}") == 1

    # ── Rate Limiting ─────────────────────────────────────────
    async def check_rate_limit(self, key: str, limit: int, window_seconds: int = 60) -> bool:
        """
        Fixed window rate limiter. The counter is created together with its
        TTL, so a window always expires.
        Returns True if request is allowed, False if rate limited.
        """
        pipe = self.client.pipeline()
        pipe.set(key, 0, ex=window_seconds, nx=True)
        pipe.incr(key)
        results = await pipe.execute()
        current_count = results[1]
        return current_count <= limit
