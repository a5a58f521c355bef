"""
tests/test_users.py
Profile read/update and the joined + hosted class lists.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Booking, Profile
from tests.conftest import auth_headers, make_class


@pytest.mark.asyncio
async def test_get_me(client: AsyncClient, user: Profile):
    response = await client.get("/users/me", headers=auth_headers(user))
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "learner@example.com"
    assert data["host_verified"] is False


@pytest.mark.asyncio
async def test_update_me_changes_only_given_fields(client: AsyncClient, user: Profile):
    response = await client.put(
        "/users/me",
        headers=auth_headers(user),
        json={"city": "Bristol", "bio": "Learning to cook."},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["city"] == "Bristol"
    assert data["bio"] == "Learning to cook."
    assert data["full_name"] == "Lena Learner"
    assert data["country"] == "United Kingdom"


@pytest.mark.asyncio
async def test_update_me_cannot_grant_host_status(client: AsyncClient, user: Profile):
    response = await client.put(
        "/users/me", headers=auth_headers(user), json={"host_verified": True}
    )
    assert response.status_code == 200
    assert response.json()["host_verified"] is False


@pytest.mark.asyncio
async def test_update_me_validation(client: AsyncClient, user: Profile):
    response = await client.put("/users/me", headers=auth_headers(user), json={"full_name": "L"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_my_classes_lists_joined_and_hosted(
    client: AsyncClient, db: AsyncSession, user: Profile, host_user: Profile, klass
):
    db.add(Booking(class_id=klass.id, user_id=user.id))
    await db.commit()

    response = await client.get("/users/me/classes", headers=auth_headers(user))
    data = response.json()
    assert [c["id"] for c in data["joined"]] == [str(klass.id)]
    assert data["hosted"] == []

    own = await make_class(db, host_user, title="Second sourdough session")
    response = await client.get("/users/me/classes", headers=auth_headers(host_user))
    data = response.json()
    assert data["joined"] == []
    assert {c["id"] for c in data["hosted"]} == {str(klass.id), str(own.id)}
    assert next(c for c in data["hosted"] if c["id"] == str(klass.id))["seats_taken"] == 1
