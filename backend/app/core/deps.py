from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import decode_token
from app.db.session import get_session, store_errors
from app.models.user import User
from app.rules.approval_workflow import Role
from app.services.roles import Actor, roles_of

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_session)],
) -> User:
    """Validate JWT and return the User ORM object."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise credentials_exc
        user_id = UUID(payload.get("sub") or "")
    except (JWTError, ValueError):
        raise credentials_exc

    with store_errors("get_current_user"):
        result = await db.execute(
            select(User).where(User.id == user_id, User.deleted_at.is_(None))
        )
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise credentials_exc
    return user


async def get_current_actor(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_session)],
) -> Actor:
    """Resolve the caller's identity and current role set for this request."""
    roles = await roles_of(db, user.id)
    return Actor(id=user.id, email=user.email, full_name=user.full_name, roles=roles)


def require_role(*roles: Role):
    """Dependency factory — raises 403 unless the actor holds one of `roles`."""
    allowed = frozenset(roles)

    async def check(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        if not actor.roles & allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=(
                    "One of the roles "
                    f"{sorted(r.value for r in allowed)} is required for this action."
                ),
            )
        return actor
    return check
