"""
tests/test_rate_limit.py
Per-IP limiting of unauthenticated traffic.
"""

import pytest
from httpx import AsyncClient

import config.redis_client
from config.redis_client import RedisCache
from config.settings import settings
from shared.models.models import Profile
from tests.conftest import auth_headers


@pytest.mark.asyncio
async def test_window_expires_from_first_request(redis):
    cache = RedisCache(redis)

    assert await cache.check_rate_limit("rate:unauth:10.0.0.1", limit=2, window_seconds=60) is True
    ttl = await redis.ttl("rate:unauth:10.0.0.1")
    assert 0 < ttl <= 60

    assert await cache.check_rate_limit("rate:unauth:10.0.0.1", limit=2, window_seconds=60) is True
    assert await cache.check_rate_limit("rate:unauth:10.0.0.1", limit=2, window_seconds=60) is False
    assert await redis.get("rate:unauth:10.0.0.1") == "3"
    assert 0 < await redis.ttl("rate:unauth:10.0.0.1") <= 60


@pytest.mark.asyncio
async def test_new_window_after_expiry(redis):
    cache = RedisCache(redis)
    for _ in range(3):
        await cache.check_rate_limit("rate:unauth:10.0.0.2", limit=2)
    await redis.delete("rate:unauth:10.0.0.2")

    assert await cache.check_rate_limit("rate:unauth:10.0.0.2", limit=2) is True
    assert await redis.get("rate:unauth:10.0.0.2") == "1"


@pytest.mark.asyncio
async def test_anonymous_requests_over_limit_get_429(
    client: AsyncClient, redis, monkeypatch, user: Profile
):
    monkeypatch.setattr(config.redis_client, "redis_client", redis)
    monkeypatch.setattr(settings, "RATE_LIMIT_UNAUTH_PER_MINUTE", 2)

    assert (await client.get("/classes")).status_code == 200
    assert (await client.get("/classes")).status_code == 200

    response = await client.get("/classes")
    assert response.status_code == 429
    assert response.headers["retry-after"] == "60"

    # Signed-in traffic and health checks are not counted
    assert (await client.get("/classes", headers=auth_headers(user))).status_code == 200
    assert (await client.get("/health")).status_code == 200
