"""Request dependencies: the session guard and the authorization policies layered on it."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import MissingToken
from app.core.security import TokenService, get_token_service
from app.models.enums import Role
from app.schemas.auth import Identity
from app.services.authorization import require_role, require_self_or_role

security = HTTPBearer(auto_error=False)


def get_current_identity(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> Identity:
    """
    Dependency: require a valid Bearer JWT and attach its identity to request.state.

    Identity comes from the token claims alone; there is no database read here, so role
    or status changes take effect for a user only when they obtain a new token.
    """
    if credentials is None or not credentials.credentials:
        raise MissingToken()
    identity = tokens.verify(credentials.credentials)
    request.state.identity = identity
    return identity


def role_required(*roles: Role) -> Callable[..., Identity]:
    """Dependency factory: 403 unless the caller holds one of roles."""

    def dependency(
        identity: Annotated[Identity, Depends(get_current_identity)],
    ) -> Identity:
        return require_role(identity, roles)

    return dependency


def self_or_role_required(param: str, *roles: Role) -> Callable[..., Identity]:
    """Dependency factory: 403 unless path parameter `param` is the caller's id or the role matches."""

    def dependency(
        request: Request,
        identity: Annotated[Identity, Depends(get_current_identity)],
    ) -> Identity:
        return require_self_or_role(identity, request.path_params.get(param), roles)

    return dependency


CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
AdminIdentity = Annotated[Identity, Depends(role_required(Role.ADMIN))]
