"""Tests for admin user and role management endpoints."""
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient, ASGITransport

from app.main import app
from app.core.deps import get_current_actor
from app.core.exceptions import DuplicateError, InvoiceValidationError
from app.db.session import get_session
from app.rules.approval_workflow import Role
from app.services.roles import Actor

USER_ID = uuid.UUID("8a7b6c5d-4e3f-4a1b-9c8d-7e6f5a4b3c2d")


def make_actor(*roles: Role) -> Actor:
    return Actor(
        id=uuid.UUID("a1b2c3d4-e5f6-7890-abcd-ef1234567890"),
        email="admin@example.com",
        full_name="Admin",
        roles=frozenset({Role.user, *roles}),
    )


class FakeUser:
    def __init__(self, roles: list[str]):
        self.id = USER_ID
        self.email = "fin@example.com"
        self.full_name = "Fiona Finance"
        self.roles = roles
        self.is_active = True
        self.created_at = datetime(2026, 10, 4, tzinfo=timezone.utc)


def install_overrides(actor: Actor):
    async def override_actor():
        return actor

    async def override_session():
        yield AsyncMock()

    app.dependency_overrides[get_current_actor] = override_actor
    app.dependency_overrides[get_session] = override_session


# ─── Access control ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("roles", [(), (Role.owner,), (Role.owner, Role.finance)])
async def test_non_admin_gets_403(roles):
    install_overrides(make_actor(*roles))
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/v1/admin/users")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 403


# ─── Users ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_user_returns_201_with_roles():
    install_overrides(make_actor(Role.admin))
    try:
        with patch(
            "app.services.roles.create_user",
            AsyncMock(return_value=FakeUser(["finance", "user"])),
        ) as mock_create:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post(
                    "/api/v1/admin/users",
                    json={
                        "email": "fin@example.com",
                        "full_name": "Fiona Finance",
                        "password": "s3cret-pass",
                        "roles": ["finance"],
                    },
                )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 201
    assert response.json()["roles"] == ["finance", "user"]
    assert mock_create.await_args.kwargs["roles"] == [Role.finance]


@pytest.mark.asyncio
async def test_create_user_duplicate_email_returns_409():
    install_overrides(make_actor(Role.admin))
    try:
        with patch("app.services.roles.create_user", AsyncMock(side_effect=DuplicateError("Email already exists"))):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post(
                    "/api/v1/admin/users",
                    json={"email": "fin@example.com", "full_name": "F", "password": "s3cret-pass"},
                )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_user_unknown_role_returns_422():
    install_overrides(make_actor(Role.admin))
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post(
                "/api/v1/admin/users",
                json={"email": "x@example.com", "full_name": "X", "password": "s3cret-pass", "roles": ["cfo"]},
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 422


# ─── Roles ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_grant_role_returns_updated_user():
    install_overrides(make_actor(Role.admin))
    try:
        with patch(
            "app.services.roles.grant_role",
            AsyncMock(return_value=FakeUser(["finance", "owner", "user"])),
        ) as mock_grant:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post(f"/api/v1/admin/users/{USER_ID}/roles", json={"role": "owner"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 201
    assert "owner" in response.json()["roles"]
    assert mock_grant.await_args.args[1:3] == (USER_ID, Role.owner)


@pytest.mark.asyncio
async def test_revoking_base_role_returns_422():
    install_overrides(make_actor(Role.admin))
    try:
        with patch(
            "app.services.roles.revoke_role",
            AsyncMock(side_effect=InvoiceValidationError("Cannot remove the 'user' role.")),
        ):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.delete(f"/api/v1/admin/users/{USER_ID}/roles/user")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 422
    assert response.json()["detail"] == "Cannot remove the 'user' role."


@pytest.mark.asyncio
async def test_revoke_role_returns_remaining_roles():
    install_overrides(make_actor(Role.admin))
    try:
        with patch("app.services.roles.revoke_role", AsyncMock(return_value=FakeUser(["user"]))):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.delete(f"/api/v1/admin/users/{USER_ID}/roles/finance")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["roles"] == ["user"]
