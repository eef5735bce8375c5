"""Role and ownership predicates applied on top of the identity the session guard attached."""

import logging
from collections.abc import Iterable

from app.core.errors import AuthenticationError, AuthorizationError, SelfModificationForbidden
from app.models.enums import Role
from app.schemas.auth import Identity

logger = logging.getLogger(__name__)


def _require_identity(identity: Identity | None) -> Identity:
    if identity is None:
        raise AuthenticationError("Not authenticated")
    return identity


def require_role(identity: Identity | None, allowed_roles: Iterable[Role]) -> Identity:
    """Raise 403 unless the caller's role is in allowed_roles; 401 if there is no caller."""
    identity = _require_identity(identity)
    allowed = set(allowed_roles)
    if identity.role not in allowed:
        logger.warning(
            "Unauthorized access",
            extra={
                "user_id": identity.user_id,
                "role": identity.role.value,
                "required": sorted(r.value for r in allowed),
            },
        )
        raise AuthorizationError("Access denied. Insufficient permissions.")
    return identity


def require_self_or_role(
    identity: Identity | None,
    resource_id: int | str | None,
    allowed_roles: Iterable[Role],
) -> Identity:
    """Raise 403 unless the caller owns resource_id or holds one of allowed_roles."""
    identity = _require_identity(identity)
    if identity.role in set(allowed_roles):
        return identity
    try:
        owner_id = int(resource_id) if resource_id is not None else None
    except (TypeError, ValueError):
        owner_id = None
    if owner_id is not None and owner_id == identity.user_id:
        return identity
    logger.warning(
        "Unauthorized access",
        extra={"user_id": identity.user_id, "resource_id": resource_id},
    )
    raise AuthorizationError("Access denied. You can only access your own resources.")


def forbid_self_target(identity: Identity, target_id: int, message: str) -> None:
    """Admin-management operations may not target the caller's own account."""
    if target_id == identity.user_id:
        raise SelfModificationForbidden(message)
