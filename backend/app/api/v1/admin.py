"""Admin user and role management endpoints."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import require_role
from app.db.session import get_session
from app.rules.approval_workflow import Role
from app.schemas.admin_user import (
    AdminUserCreate,
    AdminUserListResponse,
    AdminUserOut,
    RoleGrantRequest,
)
from app.services import roles as roles_svc
from app.services.roles import Actor

router = APIRouter()

AdminActor = Annotated[Actor, Depends(require_role(Role.admin))]


# ─── GET /admin/users ───


@router.get(
    "/users",
    response_model=AdminUserListResponse,
    summary="List users with their roles",
)
async def list_users(
    db: Annotated[AsyncSession, Depends(get_session)],
    admin: AdminActor,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    role: Role | None = Query(default=None),
):
    """Return paginated list of users, newest first. ADMIN only."""
    users, total = await roles_svc.list_users(db, page=page, page_size=page_size, role=role)
    return AdminUserListResponse(
        items=[AdminUserOut.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size,
    )


# ─── POST /admin/users ───


@router.post(
    "/users",
    response_model=AdminUserOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new user",
)
async def create_user(
    user_data: AdminUserCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
    admin: AdminActor,
):
    """Create a new user. ADMIN only."""
    user = await roles_svc.create_user(
        db,
        email=user_data.email,
        full_name=user_data.full_name,
        password=user_data.password,
        roles=user_data.roles,
        actor_id=admin.id,
    )
    return AdminUserOut.model_validate(user)


# ─── POST /admin/users/{id}/roles ───


@router.post(
    "/users/{user_id}/roles",
    response_model=AdminUserOut,
    status_code=status.HTTP_201_CREATED,
    summary="Grant a role to a user",
)
async def grant_role(
    user_id: uuid.UUID,
    body: RoleGrantRequest,
    db: Annotated[AsyncSession, Depends(get_session)],
    admin: AdminActor,
):
    user = await roles_svc.grant_role(db, user_id, body.role, actor_id=admin.id)
    return AdminUserOut.model_validate(user)


# ─── DELETE /admin/users/{id}/roles/{role} ───


@router.delete(
    "/users/{user_id}/roles/{role}",
    response_model=AdminUserOut,
    summary="Revoke a role from a user",
)
async def revoke_role(
    user_id: uuid.UUID,
    role: Role,
    db: Annotated[AsyncSession, Depends(get_session)],
    admin: AdminActor,
):
    user = await roles_svc.revoke_role(db, user_id, role, actor_id=admin.id)
    return AdminUserOut.model_validate(user)
