"""Pydantic request/response schemas."""

from app.schemas.auth import (
    AuthPayload,
    Identity,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    RoleUpdateRequest,
    UserPublic,
)
from app.schemas.envelope import ApiResponse, FieldError, fail, ok
from app.schemas.health import HealthResponse
from app.schemas.item import ItemCreateForm, ItemPublic, ItemUpdateForm

__all__ = [
    "ApiResponse",
    "AuthPayload",
    "FieldError",
    "HealthResponse",
    "Identity",
    "ItemCreateForm",
    "ItemPublic",
    "ItemUpdateForm",
    "LoginRequest",
    "ProfileUpdateRequest",
    "RegisterRequest",
    "RoleUpdateRequest",
    "UserPublic",
    "fail",
    "ok",
]
