"""Tests for the role directory: creating users, granting and revoking roles."""
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import DuplicateError, InvoiceValidationError, NotFoundError
from app.rules.approval_workflow import Role
from app.services import roles as roles_svc

USER_ID = uuid.UUID("9d3f6b2e-1a85-4c47-b0e9-3e8d7c6b5a41")
ADMIN_ID = uuid.UUID("e1c4a7b2-8d36-4f09-9a5b-6c2d1e0f3b87")


class FakeUser:
    id = USER_ID
    email = "owner@example.com"
    full_name = "Olivia Owner"
    is_active = True
    deleted_at = None


def make_db(existing=None, roles=()):
    result = MagicMock()
    result.scalar_one_or_none.return_value = existing
    result.scalars.return_value.all.return_value = list(roles)

    db = AsyncMock()
    db.execute = AsyncMock(return_value=result)
    db.add = MagicMock()
    return db


# ─── roles_of ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_roles_of_returns_role_enum_set():
    db = make_db(roles=["user", "owner", "finance"])
    roles = await roles_svc.roles_of(db, USER_ID)
    assert roles == frozenset({Role.user, Role.owner, Role.finance})


# ─── create_user ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_user_always_grants_base_role():
    db = make_db(existing=None)

    with patch.object(roles_svc, "hash_password", return_value="hashed"), \
         patch.object(roles_svc, "_reload", AsyncMock()), \
         patch("app.services.audit.log_async", AsyncMock()) as mock_audit:
        user = await roles_svc.create_user(
            db, "fin@example.com", "Fiona Finance", "s3cret-pass", roles=[Role.finance], actor_id=ADMIN_ID
        )

    db.add.assert_called_once_with(user)
    assert sorted(a.role for a in user.role_assignments) == ["finance", "user"]
    assert user.password_hash == "hashed"
    assert mock_audit.await_args.kwargs["action"] == "user_created"
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_create_user_with_taken_email_is_duplicate():
    db = make_db(existing=FakeUser())
    with pytest.raises(DuplicateError):
        await roles_svc.create_user(db, "owner@example.com", "Another", "s3cret-pass")
    db.add.assert_not_called()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_user_unique_violation_is_duplicate():
    """A soft-deleted account or a concurrent create still holds the email."""
    db = make_db(existing=None)
    db.flush.side_effect = IntegrityError("INSERT INTO users", {}, Exception("uq_users_email"))

    with patch.object(roles_svc, "hash_password", return_value="hashed"), \
         patch("app.services.audit.log_async", AsyncMock()) as mock_audit:
        with pytest.raises(DuplicateError):
            await roles_svc.create_user(db, "owner@example.com", "Another", "s3cret-pass")

    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()
    mock_audit.assert_not_awaited()


# ─── grant_role ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_grant_role_already_held_is_duplicate():
    db = make_db()
    with patch.object(roles_svc, "get_user", AsyncMock(return_value=FakeUser())), \
         patch.object(roles_svc, "roles_of", AsyncMock(return_value=frozenset({Role.user, Role.owner}))):
        with pytest.raises(DuplicateError):
            await roles_svc.grant_role(db, USER_ID, Role.owner, actor_id=ADMIN_ID)
    db.add.assert_not_called()


@pytest.mark.asyncio
async def test_grant_role_adds_assignment_and_audits():
    db = make_db()
    with patch.object(roles_svc, "get_user", AsyncMock(return_value=FakeUser())), \
         patch.object(roles_svc, "roles_of", AsyncMock(return_value=frozenset({Role.user}))), \
         patch.object(roles_svc, "_reload", AsyncMock()), \
         patch("app.services.audit.log_async", AsyncMock()) as mock_audit:
        await roles_svc.grant_role(db, USER_ID, Role.finance, actor_id=ADMIN_ID)

    added = db.add.call_args.args[0]
    assert added.role == "finance"
    assert added.user_id == USER_ID
    assert mock_audit.await_args.kwargs["after"] == {"roles": ["finance", "user"]}
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_grant_role_for_unknown_user_is_not_found():
    db = make_db()
    with patch.object(roles_svc, "get_user", AsyncMock(side_effect=NotFoundError("User not found."))):
        with pytest.raises(NotFoundError):
            await roles_svc.grant_role(db, USER_ID, Role.owner)


# ─── revoke_role ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_base_role_cannot_be_revoked():
    db = make_db()
    with pytest.raises(InvoiceValidationError):
        await roles_svc.revoke_role(db, USER_ID, Role.user, actor_id=ADMIN_ID)
    db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_revoke_role_not_held_is_not_found():
    db = make_db()
    with patch.object(roles_svc, "get_user", AsyncMock(return_value=FakeUser())), \
         patch.object(roles_svc, "roles_of", AsyncMock(return_value=frozenset({Role.user}))):
        with pytest.raises(NotFoundError):
            await roles_svc.revoke_role(db, USER_ID, Role.finance)


@pytest.mark.asyncio
async def test_revoke_role_deletes_assignment_and_audits():
    db = make_db()
    with patch.object(roles_svc, "get_user", AsyncMock(return_value=FakeUser())), \
         patch.object(roles_svc, "roles_of", AsyncMock(return_value=frozenset({Role.user, Role.owner}))), \
         patch.object(roles_svc, "_reload", AsyncMock()), \
         patch("app.services.audit.log_async", AsyncMock()) as mock_audit:
        await roles_svc.revoke_role(db, USER_ID, Role.owner, actor_id=ADMIN_ID)

    db.execute.assert_awaited_once()
    assert "DELETE FROM user_roles" in str(db.execute.await_args.args[0])
    assert mock_audit.await_args.kwargs["action"] == "role_revoked"
    assert mock_audit.await_args.kwargs["after"] == {"roles": ["user"]}
    db.commit.assert_awaited_once()
