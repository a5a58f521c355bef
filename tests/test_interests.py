"""
tests/test_interests.py
Learning-interest capture and the popular list.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import LearningInterest, Profile
from tests.conftest import auth_headers


@pytest.mark.asyncio
async def test_anonymous_submission(client: AsyncClient, db: AsyncSession):
    response = await client.post("/interests", json={"interest": "  Pottery  "})
    assert response.status_code == 201
    assert response.json()["interest"] == "Pottery"

    stored = (await db.execute(select(LearningInterest))).scalar_one()
    assert stored.user_id is None


@pytest.mark.asyncio
async def test_signed_in_submission_is_attributed(
    client: AsyncClient, db: AsyncSession, user: Profile
):
    await client.post("/interests", headers=auth_headers(user), json={"interest": "Salsa"})
    stored = (await db.execute(select(LearningInterest))).scalar_one()
    assert stored.user_id == user.id


@pytest.mark.asyncio
@pytest.mark.parametrize("interest", ["", "   ", "x" * 31])
async def test_interest_length(client: AsyncClient, interest):
    response = await client.post("/interests", json={"interest": interest})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_popular_top_three(client: AsyncClient, redis):
    for interest in ["Pottery", "pottery", "POTTERY", "Salsa", "Salsa", "Salsa", "Salsa", "Coding", "Chess", "Chess"]:
        await client.post("/interests", json={"interest": interest})

    response = await client.get("/interests/popular")
    assert response.status_code == 200
    assert response.json()["interests"] == ["salsa", "pottery", "chess"]
    assert await redis.exists("interests:popular") == 1


@pytest.mark.asyncio
async def test_new_submission_refreshes_popular(client: AsyncClient):
    await client.post("/interests", json={"interest": "Knitting"})
    first = await client.get("/interests/popular")
    assert first.json()["interests"] == ["knitting"]

    await client.post("/interests", json={"interest": "Baking"})
    await client.post("/interests", json={"interest": "Baking"})
    second = await client.get("/interests/popular")
    assert second.json()["interests"][0] == "baking"
