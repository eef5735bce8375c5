"""Request/response schemas for auth and user-management endpoints."""

import re
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.enums import Role

_DIGIT = re.compile(r"\d")


class Identity(BaseModel):
    """Authenticated caller as carried by the bearer token (no database read)."""

    user_id: int
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class RegisterRequest(BaseModel):
    """Registration payload."""

    email: EmailStr = Field(..., max_length=255, description="Email address")
    password: str = Field(..., min_length=6, max_length=128, description="Password")
    name: str = Field(..., min_length=2, max_length=50, description="Display name")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def password_has_digit(cls, v: str) -> str:
        if not _DIGIT.search(v):
            raise ValueError("Password must contain at least one number")
        return v

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: EmailStr = Field(..., max_length=255, description="Email address")
    password: str = Field(..., min_length=1, max_length=128, description="Password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ProfileUpdateRequest(BaseModel):
    """Partial profile update; name and password changes may be combined."""

    name: str | None = Field(default=None, max_length=50)
    current_password: str | None = Field(default=None, max_length=128)
    new_password: str | None = Field(default=None, max_length=128)


class RoleUpdateRequest(BaseModel):
    """New role for a user (admin only)."""

    role: Role


class UserPublic(BaseModel):
    """User as returned to clients; the password hash is never included."""

    id: int
    email: str
    name: str
    role: Role
    avatar: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class AuthPayload(BaseModel):
    """Register/login result: the user plus a fresh bearer token."""

    user: UserPublic
    token: str
