"""
Authentication and user-management flows.

Every operation takes the request's Session and raises typed errors from app.core.errors;
the API layer turns them into responses. Admin-management operations refuse to target
the caller's own account.
"""

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, BinaryIO

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import (
    AccountDeactivated,
    CurrentPasswordRequired,
    DuplicateEmail,
    IncorrectPassword,
    InvalidCredentials,
    NoChanges,
    NotFoundError,
    ValidationFailed,
    WeakPassword,
)
from app.core.security import (
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    TokenService,
    hash_password,
    verify_password,
)
from app.models.enums import Role
from app.models.user import User
from app.schemas.auth import Identity, ProfileUpdateRequest, RegisterRequest
from app.services import users
from app.services.authorization import forbid_self_target, require_role
from app.services.uploads import AVATARS, ImageStore

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


@lru_cache
def _dummy_hash(rounds: int) -> str:
    # Verified against when the email is unknown so both login failures cost the same
    return hash_password("not-a-real-password", rounds=rounds)


def _issue(tokens: TokenService, user: User) -> str:
    return tokens.issue(user.id, user.email, user.role)


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = users.find_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def register(
    db: Session,
    body: RegisterRequest,
    tokens: TokenService,
    settings: "Settings",
) -> tuple[User, str]:
    """Create a USER account and return it with a fresh token."""
    email = body.email.strip().lower()
    if users.find_by_email(db, email) is not None:
        raise DuplicateEmail()

    user = User(
        email=email,
        password_hash=hash_password(body.password, rounds=settings.BCRYPT_ROUNDS),
        name=body.name.strip(),
        role=Role.USER.value,
        is_active=True,
    )
    try:
        users.insert(db, user)
    except IntegrityError as e:
        # Lost a race with a concurrent registration of the same email
        db.rollback()
        raise DuplicateEmail(cause=e) from e

    logger.info("User registered successfully", extra={"user_id": user.id, "email": user.email})
    return user, _issue(tokens, user)


def login(
    db: Session,
    email: str,
    password: str,
    tokens: TokenService,
    settings: "Settings",
) -> tuple[User, str]:
    """
    Check credentials and issue a new token.

    Unknown email and wrong password raise the same InvalidCredentials. A deactivated
    account raises AccountDeactivated whatever password was supplied.
    """
    user = users.find_by_email(db, email)
    if user is None:
        verify_password(password, _dummy_hash(settings.BCRYPT_ROUNDS))
        raise InvalidCredentials()
    if not user.is_active:
        logger.info("Login refused for deactivated account", extra={"user_id": user.id})
        raise AccountDeactivated()

    try:
        valid = verify_password(password, user.password_hash)
    except ValueError:
        logger.error("Stored password hash is malformed", extra={"user_id": user.id})
        raise InvalidCredentials()
    if not valid:
        raise InvalidCredentials()

    logger.info("User logged in successfully", extra={"user_id": user.id, "email": user.email})
    return user, _issue(tokens, user)


def get_profile(db: Session, identity: Identity) -> User:
    """Authoritative re-read of the caller's row; the account may be gone since token issuance."""
    return _get_user_or_404(db, identity.user_id)


def update_profile(
    db: Session,
    identity: Identity,
    changes: ProfileUpdateRequest,
    settings: "Settings",
) -> User:
    """Change display name and/or password. Changing the password needs the current one."""
    user = _get_user_or_404(db, identity.user_id)
    updates: dict[str, str] = {}

    name = (changes.name or "").strip()
    if name:
        if len(name) < 2:
            raise ValidationFailed(
                errors=[{"field": "name", "message": "Name must be between 2 and 50 characters"}]
            )
        updates["name"] = name

    if changes.new_password:
        if not changes.current_password:
            raise CurrentPasswordRequired()
        try:
            valid = verify_password(changes.current_password, user.password_hash)
        except ValueError:
            logger.error("Stored password hash is malformed", extra={"user_id": user.id})
            raise IncorrectPassword()
        if not valid:
            raise IncorrectPassword()
        if not (PASSWORD_MIN_LEN <= len(changes.new_password) <= PASSWORD_MAX_LEN):
            raise WeakPassword(f"New password must be at least {PASSWORD_MIN_LEN} characters")
        updates["password_hash"] = hash_password(
            changes.new_password, rounds=settings.BCRYPT_ROUNDS
        )

    if not updates:
        raise NoChanges()

    for field, value in updates.items():
        setattr(user, field, value)
    users.save(db, user)
    logger.info(
        "Profile updated",
        extra={"user_id": user.id, "fields": sorted(k for k in updates if k != "password_hash")},
    )
    return user


def list_users(db: Session, identity: Identity) -> list[User]:
    require_role(identity, [Role.ADMIN])
    return users.list_all(db)


def update_user_role(db: Session, identity: Identity, target_id: int, role: Role) -> User:
    require_role(identity, [Role.ADMIN])
    forbid_self_target(identity, target_id, "Cannot change your own role")
    user = _get_user_or_404(db, target_id)
    user.role = Role(role).value
    users.save(db, user)
    logger.info(
        "User role updated",
        extra={"user_id": target_id, "new_role": user.role, "updated_by": identity.user_id},
    )
    return user


def toggle_user_status(db: Session, identity: Identity, target_id: int) -> User:
    """Flip is_active. Concurrent toggles are last-write-wins on the value each one read."""
    require_role(identity, [Role.ADMIN])
    forbid_self_target(identity, target_id, "Cannot deactivate your own account")
    user = _get_user_or_404(db, target_id)
    user.is_active = not bool(user.is_active)
    users.save(db, user)
    logger.info(
        "User status toggled",
        extra={"user_id": target_id, "is_active": user.is_active, "updated_by": identity.user_id},
    )
    return user


def delete_user(db: Session, identity: Identity, target_id: int, images: ImageStore) -> None:
    """
    Remove the account and its avatar file.

    Unlike item deletion this is not idempotent: a second delete raises NotFoundError.
    """
    require_role(identity, [Role.ADMIN])
    forbid_self_target(identity, target_id, "Cannot delete your own account")
    user = _get_user_or_404(db, target_id)
    avatar = user.avatar
    try:
        users.delete(db, user)
    except StaleDataError as e:
        db.rollback()
        raise NotFoundError("User not found") from e

    logger.info("User deleted", extra={"user_id": target_id, "deleted_by": identity.user_id})
    if avatar:
        images.delete(avatar)


def update_avatar(
    db: Session,
    identity: Identity,
    images: ImageStore,
    content_type: str | None,
    stream: BinaryIO,
    filename: str | None = None,
) -> User:
    """Store a new avatar; the previous file is removed only after the new reference commits."""

    def associate(reference: str) -> str | None:
        try:
            user = (
                db.query(User)
                .filter(User.id == identity.user_id)
                .with_for_update()
                .first()
            )
            if user is None:
                raise NotFoundError("User not found")
            previous = user.avatar
            user.avatar = reference
            db.commit()
        except Exception:
            db.rollback()
            raise
        return previous

    reference = images.store(AVATARS, content_type, stream, associate, filename=filename)
    user = _get_user_or_404(db, identity.user_id)
    logger.info("Avatar updated successfully", extra={"user_id": user.id, "avatar": reference})
    return user


def delete_avatar(db: Session, identity: Identity, images: ImageStore) -> User:
    """Clear the avatar reference, then remove its file."""
    user = _get_user_or_404(db, identity.user_id)
    if not user.avatar:
        raise NotFoundError("No avatar to delete")
    previous = user.avatar
    user.avatar = None
    users.save(db, user)
    images.delete(previous)
    logger.info("Avatar deleted successfully", extra={"user_id": user.id})
    return user
