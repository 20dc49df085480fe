"""Pydantic schemas for admin user and role management."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.rules.approval_workflow import Role


class AdminUserCreate(BaseModel):
    """Create a new user (admin only). 'user' is always granted."""
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8)
    roles: list[Role] = []


class RoleGrantRequest(BaseModel):
    role: Role


class AdminUserOut(BaseModel):
    """User response for admin endpoints."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    full_name: str
    roles: list[str]
    is_active: bool
    created_at: datetime


class AdminUserListResponse(BaseModel):
    """Paginated list of users."""
    items: list[AdminUserOut]
    total: int
    page: int
    page_size: int
