from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.deps import get_current_actor, get_current_user
from app.core.limiter import limiter
from app.core.security import create_access_token, verify_password
from app.db.session import get_session, store_errors
from app.models.user import User
from app.schemas.auth import Token, UserOut
from app.services import audit as audit_svc
from app.services.roles import Actor

router = APIRouter()


@router.post("/login", response_model=Token)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    form: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[AsyncSession, Depends(get_session)],
):
    with store_errors("login"):
        result = await db.execute(
            select(User).where(User.email == form.username, User.deleted_at.is_(None))
        )
    user = result.scalar_one_or_none()
    if not user or not verify_password(form.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")

    token = create_access_token(subject=str(user.id))

    await audit_svc.log_async(
        db,
        action="user_login",
        entity_type="user",
        entity_id=user.id,
        actor_id=user.id,
        actor_email=user.email,
        notes=f"Login from IP {request.client.host if request.client else 'unknown'}",
    )
    await db.commit()

    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=UserOut)
async def me(
    current_user: Annotated[User, Depends(get_current_user)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return UserOut(
        id=current_user.id,
        email=current_user.email,
        full_name=current_user.full_name,
        roles=sorted(r.value for r in actor.roles),
        is_active=current_user.is_active,
    )
