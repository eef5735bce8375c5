"""Password hashing and JWT creation/verification for authentication."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any

import bcrypt
import jwt

from app.core.config import get_settings
from app.core.errors import ExpiredTokenError, MalformedTokenError
from app.models.enums import Role
from app.schemas.auth import Identity

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes of input
BCRYPT_MAX_BYTES = 72

# Min/max lengths for password changes (registration is validated by the request schema).
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. A fresh salt is generated on every call."""
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """
    Verify a plain password against a stored hash.

    Returns False on mismatch. Raises ValueError if the stored hash is malformed.
    """
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except TypeError as e:
        raise ValueError("Stored password hash is malformed") from e


class TokenService:
    """
    Issues and verifies signed, time-bounded bearer tokens.

    Key material is handed in once at construction; rotating the secret invalidates
    every token issued under the previous one.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expire_minutes: int = 10080,
        clock: Clock = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("Token secret must be non-empty")
        self._secret = secret
        self._algorithm = algorithm
        self._lifetime = timedelta(minutes=expire_minutes)
        self._clock = clock

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    def issue(self, user_id: int, email: str, role: Role | str) -> str:
        """Create a JWT with sub (user id), email, role, iat and exp."""
        now = self._clock()
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "email": email,
            "role": Role(role).value,
            "iat": int(now.timestamp()),
            "exp": int((now + self._lifetime).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Identity:
        """
        Validate signature, structure and expiry; return the identity carried by the token.

        Raises ExpiredTokenError once the clock is past exp, MalformedTokenError otherwise.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # Time checks run below against the injected clock
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": ["sub", "exp", "iat"],
                },
            )
        except jwt.PyJWTError as e:
            raise MalformedTokenError(cause=e) from e

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise MalformedTokenError()
        if self._clock().timestamp() >= exp:
            raise ExpiredTokenError()

        try:
            return Identity(
                user_id=int(payload["sub"]),
                email=str(payload.get("email") or ""),
                role=Role(payload.get("role")),
            )
        except (TypeError, ValueError) as e:
            raise MalformedTokenError(cause=e) from e


@lru_cache
def get_token_service() -> TokenService:
    """Dependency: process-wide TokenService built from settings at first use."""
    settings = get_settings()
    return TokenService(
        secret=settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
        expire_minutes=settings.JWT_EXPIRE_MINUTES,
    )
