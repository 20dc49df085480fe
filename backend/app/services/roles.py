"""Role directory — who holds which workflow roles.

Roles are always read fresh per operation and handed to the workflow engine
as an explicit set; nothing in the service caches them between requests.
"""
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateError, InvoiceValidationError, NotFoundError
from app.core.security import hash_password
from app.db.session import store_errors
from app.models.user import User, UserRole
from app.rules.approval_workflow import Role
from app.services import audit as audit_svc

logger = logging.getLogger(__name__)

# Every account holds this role; it is granted on creation and never revoked.
BASE_ROLE = Role.user


@dataclass(frozen=True)
class Actor:
    """The acting identity and the roles it held when the request started."""

    id: uuid.UUID
    email: str
    full_name: str
    roles: frozenset[Role]


async def _reload(db: AsyncSession, user: User) -> None:
    await db.refresh(user)
    await db.refresh(user, ["role_assignments"])


async def roles_of(db: AsyncSession, user_id: uuid.UUID) -> frozenset[Role]:
    """Return the set of roles currently granted to a user."""
    with store_errors("roles_of"):
        result = await db.execute(select(UserRole.role).where(UserRole.user_id == user_id))
        return frozenset(Role(r) for r in result.scalars().all())


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    with store_errors("get_user"):
        result = await db.execute(
            select(User).where(User.id == user_id, User.deleted_at.is_(None))
        )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"User {user_id} not found.")
    return user


async def list_users(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    role: Role | None = None,
) -> tuple[list[User], int]:
    """Return (users, total) newest first, optionally filtered by a held role."""
    stmt = select(User).where(User.deleted_at.is_(None))
    if role is not None:
        stmt = stmt.where(
            User.id.in_(select(UserRole.user_id).where(UserRole.role == role.value))
        )

    with store_errors("list_users"):
        total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
        offset = (page - 1) * page_size
        result = await db.execute(
            stmt.order_by(User.created_at.desc()).offset(offset).limit(page_size)
        )
    return list(result.scalars().all()), total


async def create_user(
    db: AsyncSession,
    email: str,
    full_name: str,
    password: str,
    roles: list[Role] | None = None,
    actor_id: uuid.UUID | None = None,
) -> User:
    """Create an account holding BASE_ROLE plus any extra roles. Commits."""
    with store_errors("create_user"):
        existing = await db.execute(
            select(User).where(User.email == email, User.deleted_at.is_(None))
        )
        if existing.scalar_one_or_none():
            raise DuplicateError("Email already exists")

        granted = sorted({BASE_ROLE, *(roles or [])}, key=lambda r: r.value)
        user = User(
            email=email,
            full_name=full_name,
            password_hash=hash_password(password),
            is_active=True,
            role_assignments=[UserRole(role=r.value) for r in granted],
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as exc:
            # Concurrent create, or the email belongs to a soft-deleted account.
            await db.rollback()
            raise DuplicateError("Email already exists") from exc

        await audit_svc.log_async(
            db,
            action="user_created",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            after={"email": email, "roles": [r.value for r in granted]},
        )
        await db.commit()
        await _reload(db, user)

    logger.info("Created user %s with roles %s", user.id, [r.value for r in granted])
    return user


async def grant_role(
    db: AsyncSession,
    user_id: uuid.UUID,
    role: Role,
    actor_id: uuid.UUID | None = None,
) -> User:
    """Grant `role` to a user. Raises DuplicateError if already held."""
    user = await get_user(db, user_id)
    current = await roles_of(db, user_id)
    if role in current:
        raise DuplicateError(f"User already has role '{role.value}'.")

    with store_errors("grant_role"):
        db.add(UserRole(user_id=user.id, role=role.value))
        try:
            await db.flush()
        except IntegrityError as exc:
            # Concurrent grant of the same role won the unique constraint.
            await db.rollback()
            raise DuplicateError(f"User already has role '{role.value}'.") from exc

        await audit_svc.log_async(
            db,
            action="role_granted",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            before={"roles": sorted(r.value for r in current)},
            after={"roles": sorted(r.value for r in current | {role})},
        )
        await db.commit()
        await _reload(db, user)

    logger.info("Role %s granted to user %s by %s", role.value, user_id, actor_id)
    return user


async def revoke_role(
    db: AsyncSession,
    user_id: uuid.UUID,
    role: Role,
    actor_id: uuid.UUID | None = None,
) -> User:
    """Revoke `role` from a user. The base 'user' role cannot be revoked."""
    if role is BASE_ROLE:
        raise InvoiceValidationError(f"Cannot remove the '{BASE_ROLE.value}' role.")

    user = await get_user(db, user_id)
    current = await roles_of(db, user_id)
    if role not in current:
        raise NotFoundError(f"User does not have role '{role.value}'.")

    with store_errors("revoke_role"):
        await db.execute(
            delete(UserRole).where(UserRole.user_id == user_id, UserRole.role == role.value)
        )
        await audit_svc.log_async(
            db,
            action="role_revoked",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            before={"roles": sorted(r.value for r in current)},
            after={"roles": sorted(r.value for r in current - {role})},
        )
        await db.commit()
        await _reload(db, user)

    logger.info("Role %s revoked from user %s by %s", role.value, user_id, actor_id)
    return user
