"""
tests/conftest.py
Shared fixtures: a fresh SQLite database per test, fakeredis in place of
Redis, a mocked storage service, and ready-made users and classes.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest_the_table.db")
os.environ.setdefault("SUPABASE_URL", "https://storage.test")
os.environ.setdefault("SUPABASE_KEY", "test-service-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-signing-tokens")

import datetime as dt
import uuid
from typing import Optional

import httpx
import pytest
from fakeredis import aioredis as fake_aioredis
from httpx import ASGITransport, AsyncClient
from jose import jwt
from pybreaker import CircuitBreaker

from config.database import AsyncSessionLocal, Base, engine
from config.redis_client import get_redis
from config.settings import settings
from main import app
from shared.models.models import AppRole, Class, Credits, Profile, UserRoleAssignment
from shared.utils.storage import StorageClient, get_storage


TOKEN_LIFETIME = dt.timedelta(minutes=60)


def create_access_token(user_id: str, email: str, extra: Optional[dict] = None) -> tuple[str, str]:
    """
    Sign a token the way the identity service does.
    Returns (token, jti); jti is what logout deny-lists.
    """
    jti = str(uuid.uuid4())
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "jti": jti,
        "aud": settings.JWT_AUDIENCE,
        "role": "authenticated",
        "iat": now,
        "exp": now + TOKEN_LIFETIME,
        **(extra or {}),
    }
    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, jti


def auth_headers(profile: Profile, jti_out: Optional[list] = None, **claims) -> dict:
    """Bearer header for a token shaped like the identity service's."""
    token, jti = create_access_token(str(profile.id), profile.email, extra=claims or None)
    if jti_out is not None:
        jti_out.append(jti)
    return {"Authorization": f"Bearer {token}"}


# ── Infrastructure ─────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def redis():
    client = fake_aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def storage_requests() -> list:
    return []


@pytest.fixture
def storage(storage_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        storage_requests.append(request)
        return httpx.Response(200, json={"Key": request.url.path})

    client = StorageClient(
        "https://storage.test",
        "test-service-key",
        "class-photos",
        transport=httpx.MockTransport(handler),
        breaker=CircuitBreaker(fail_max=5, reset_timeout=60),
    )
    yield client
    client.close()


@pytest.fixture
async def client(redis, storage):
    app.dependency_overrides[get_redis] = lambda: redis
    app.dependency_overrides[get_storage] = lambda: storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def db():
    async with AsyncSessionLocal() as session:
        yield session


# ── Users ──────────────────────────────────────────────────────────────────────

async def make_profile(
    db,
    email: str,
    full_name: str,
    topped_up: int = 0,
    teaching: int = 0,
    host_verified: bool = False,
) -> Profile:
    profile = Profile(
        id=uuid.uuid4(),
        email=email,
        full_name=full_name,
        city="London",
        country="United Kingdom",
        host_verified=host_verified,
    )
    db.add(profile)
    await db.flush()
    db.add(Credits(user_id=profile.id, topped_up_balance=topped_up, teaching_balance=teaching))
    await db.commit()
    return profile


@pytest.fixture
async def user(db) -> Profile:
    return await make_profile(db, "learner@example.com", "Lena Learner", topped_up=10)


@pytest.fixture
async def other_user(db) -> Profile:
    return await make_profile(db, "second@example.com", "Sam Second", topped_up=10)


@pytest.fixture
async def host_user(db) -> Profile:
    return await make_profile(db, "host@example.com", "Hana Host", host_verified=True)


@pytest.fixture
async def admin_user(db) -> Profile:
    admin = await make_profile(db, "admin@example.com", "Ada Admin")
    db.add(UserRoleAssignment(user_id=admin.id, role=AppRole.ADMIN))
    await db.commit()
    return admin


# ── Classes ────────────────────────────────────────────────────────────────────

async def make_class(db, host: Profile, **overrides) -> Class:
    fields = dict(
        host_id=host.id,
        title="Sourdough from scratch",
        description="Mix, fold and shape a loaf you can bake at home tomorrow.",
        category="Cooking",
        city="London",
        country="United Kingdom",
        address="12 Baker Street, London",
        date=dt.date.today() + dt.timedelta(days=7),
        time=dt.time(18, 30),
        duration=2,
        cost_credits=5,
        max_participants=10,
        who_for="Beginners\nAnyone who likes bread",
        what_to_bring="• Apron • A jar",
    )
    fields.update(overrides)
    klass = Class(**fields)
    db.add(klass)
    await db.commit()
    return klass


@pytest.fixture
async def klass(db, host_user) -> Class:
    return await make_class(db, host_user)
