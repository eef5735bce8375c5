"""Auth endpoints: register, login, profile, avatar, and admin user management."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from app.api.deps import AdminIdentity, CurrentIdentity, self_or_role_required
from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.errors import NoImage, NotFoundError
from app.core.security import TokenService, get_token_service
from app.models.enums import Role
from app.schemas.auth import (
    AuthPayload,
    Identity,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    RoleUpdateRequest,
    UserPublic,
)
from app.schemas.envelope import ApiResponse, ok
from app.services import auth_flow, users
from app.services.uploads import ImageStore, get_image_store

router = APIRouter()

DbSession = Annotated[Session, Depends(get_db)]
Tokens = Annotated[TokenService, Depends(get_token_service)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Images = Annotated[ImageStore, Depends(get_image_store)]
UserId = Annotated[int, Path(ge=1, description="User id")]


def _public(user: object) -> UserPublic:
    return UserPublic.model_validate(user)


@router.post(
    "/register",
    response_model=ApiResponse[AuthPayload],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
def register(
    body: RegisterRequest,
    db: DbSession,
    tokens: Tokens,
    settings: AppSettings,
) -> dict[str, object]:
    """Create an account with role USER and return it with a bearer token."""
    user, token = auth_flow.register(db, body, tokens, settings)
    return ok(AuthPayload(user=_public(user), token=token))


@router.post(
    "/login",
    response_model=ApiResponse[AuthPayload],
    response_model_exclude_unset=True,
)
def login(
    body: LoginRequest,
    db: DbSession,
    tokens: Tokens,
    settings: AppSettings,
) -> dict[str, object]:
    """
    Authenticate with email and password; returns the user and a JWT.
    Include the token in the Authorization header as: Bearer <token>
    """
    user, token = auth_flow.login(db, body.email, body.password, tokens, settings)
    return ok(AuthPayload(user=_public(user), token=token))


@router.get("/profile", response_model=ApiResponse[UserPublic], response_model_exclude_unset=True)
def get_profile(identity: CurrentIdentity, db: DbSession) -> dict[str, object]:
    """Current user's profile, re-read from the database."""
    return ok(_public(auth_flow.get_profile(db, identity)))


@router.patch("/profile", response_model=ApiResponse[UserPublic], response_model_exclude_unset=True)
def update_profile(
    body: ProfileUpdateRequest,
    identity: CurrentIdentity,
    db: DbSession,
    settings: AppSettings,
) -> dict[str, object]:
    """Change name and/or password (the current password is required for the latter)."""
    return ok(_public(auth_flow.update_profile(db, identity, body, settings)))


@router.post("/avatar", response_model=ApiResponse[UserPublic], response_model_exclude_unset=True)
async def upload_avatar(
    request: Request,
    identity: CurrentIdentity,
    db: DbSession,
    images: Images,
) -> dict[str, object]:
    """
    Replace the caller's avatar.

    Send `multipart/form-data` with the image in a field named `avatar` (JPEG, PNG, GIF
    or WebP). The image is resized to fit 800x800 and stored as WebP.
    """
    images.check_content_length(request.headers.get("content-length"))
    async with request.form() as form:
        upload = form.get("avatar")
        if not isinstance(upload, UploadFile):
            raise NoImage()
        user = await run_in_threadpool(
            auth_flow.update_avatar,
            db,
            identity,
            images,
            upload.content_type,
            upload.file,
            upload.filename,
        )
    return ok(_public(user))


@router.delete("/avatar", response_model=ApiResponse[UserPublic], response_model_exclude_unset=True)
def delete_avatar(identity: CurrentIdentity, db: DbSession, images: Images) -> dict[str, object]:
    """Remove the caller's avatar reference and file."""
    return ok(_public(auth_flow.delete_avatar(db, identity, images)))


@router.get(
    "/users",
    response_model=ApiResponse[list[UserPublic]],
    response_model_exclude_unset=True,
)
def list_users(admin: AdminIdentity, db: DbSession) -> dict[str, object]:
    """List all users, newest first (admin only)."""
    return ok([_public(u) for u in auth_flow.list_users(db, admin)])


@router.get(
    "/users/{user_id}",
    response_model=ApiResponse[UserPublic],
    response_model_exclude_unset=True,
)
def get_user(
    user_id: UserId,
    _caller: Annotated[Identity, Depends(self_or_role_required("user_id", Role.ADMIN))],
    db: DbSession,
) -> dict[str, object]:
    """A single user; visible to that user and to admins."""
    user = users.find_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return ok(_public(user))


@router.patch(
    "/users/{user_id}/role",
    response_model=ApiResponse[UserPublic],
    response_model_exclude_unset=True,
)
def update_user_role(
    user_id: UserId,
    body: RoleUpdateRequest,
    admin: AdminIdentity,
    db: DbSession,
) -> dict[str, object]:
    """Set a user's role (admin only; not on yourself)."""
    return ok(_public(auth_flow.update_user_role(db, admin, user_id, body.role)))


@router.patch(
    "/users/{user_id}/status",
    response_model=ApiResponse[UserPublic],
    response_model_exclude_unset=True,
)
def toggle_user_status(user_id: UserId, admin: AdminIdentity, db: DbSession) -> dict[str, object]:
    """Activate or deactivate a user (admin only; not on yourself)."""
    return ok(_public(auth_flow.toggle_user_status(db, admin, user_id)))


@router.delete("/users/{user_id}", response_model=ApiResponse[None], response_model_exclude_unset=True)
def delete_user(
    user_id: UserId,
    admin: AdminIdentity,
    db: DbSession,
    images: Images,
) -> dict[str, object]:
    """Delete a user (admin only; not yourself). Deleting an id that is already gone is a 404."""
    auth_flow.delete_user(db, admin, user_id, images)
    return ok(message="User deleted successfully")
