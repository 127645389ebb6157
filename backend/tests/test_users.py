"""
Tests for user administration endpoints and admin seeding.
"""

import pytest
from httpx import AsyncClient

from app.core.security import verify_password
from app.services.user_service import ensure_admin


@pytest.mark.asyncio
async def test_list_users_by_role(client: AsyncClient, admin_headers, test_user, other_user):
    everyone = await client.get("/api/v1/users/", headers=admin_headers)
    assert everyone.status_code == 200
    assert len(everyone.json()) == 3
    assert all("hashed_password" not in u for u in everyone.json())

    admins = await client.get("/api/v1/users/", params={"role": "admin"}, headers=admin_headers)
    assert [u["email"] for u in admins.json()] == ["admin@example.com"]


@pytest.mark.asyncio
async def test_list_users_requires_admin(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/users/", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_user(client: AsyncClient, admin_headers, other_user):
    response = await client.delete(f"/api/v1/users/{other_user.id}", headers=admin_headers)
    assert response.status_code == 200

    remaining = await client.get("/api/v1/users/", headers=admin_headers)
    assert other_user.id not in [u["id"] for u in remaining.json()]


@pytest.mark.asyncio
async def test_cannot_delete_last_admin(client: AsyncClient, admin_headers, admin_user):
    response = await client.delete(f"/api/v1/users/{admin_user.id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete the last admin user"


@pytest.mark.asyncio
async def test_cannot_delete_user_with_bookings(
    client: AsyncClient, admin_headers, auth_headers, test_user, test_schedule
):
    await client.post(
        "/api/v1/bookings/",
        json={"schedule_id": test_schedule.id, "selected_seats": ["A1"]},
        headers=auth_headers,
    )
    response = await client.delete(f"/api/v1/users/{test_user.id}", headers=admin_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_delete_missing_user(client: AsyncClient, admin_headers):
    response = await client.delete("/api/v1/users/99999", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_ensure_admin_is_idempotent(db_session):
    user, created = await ensure_admin(db_session, "Root", "root@example.com", "rootpass1")
    assert created
    assert user.role == "admin"
    assert verify_password("rootpass1", user.hashed_password)

    again, created_again = await ensure_admin(db_session, "Root", "root@example.com", "other")
    assert not created_again
    assert again.id == user.id
