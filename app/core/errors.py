"""Typed application errors.

Services raise these instead of HTTPException so they stay free of HTTP concerns;
exception handlers in app.api.errors turn them into the response envelope.
"""


class AppError(Exception):
    """Base for every expected failure; carries the client-facing message and status."""

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, cause: Exception | None = None) -> None:
        self.message = message or self.default_message
        self.cause = cause
        super().__init__(self.message)


class ValidationFailed(AppError):
    """Malformed or missing input, with optional per-field detail."""

    default_message = "Validation failed"

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or []


# --- authentication (401) ---


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Not authenticated"


class MissingToken(AuthenticationError):
    default_message = "Access denied. No token provided."


class ExpiredTokenError(AuthenticationError):
    default_message = "Token expired. Please login again."


class MalformedTokenError(AuthenticationError):
    default_message = "Invalid token."


class InvalidCredentials(AuthenticationError):
    # Same message for unknown email and wrong password
    default_message = "Invalid email or password"


# --- authorization (403) ---


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Access denied. Insufficient permissions."


class AccountDeactivated(AuthorizationError):
    default_message = "Account is deactivated. Please contact administrator."


# --- lookup and conflicts ---


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 400
    default_message = "Conflict"


class DuplicateEmail(ConflictError):
    default_message = "User with this email already exists"


# --- business rules (400) ---


class SelfModificationForbidden(AppError):
    default_message = "Cannot modify your own account"


class CurrentPasswordRequired(AppError):
    default_message = "Current password is required to set a new password"


class IncorrectPassword(AppError):
    default_message = "Current password is incorrect"


class WeakPassword(AppError):
    default_message = "New password is too short"


class NoChanges(AppError):
    default_message = "No valid fields to update"


class NoImage(AppError):
    default_message = "No image file provided"


# --- upload pipeline ---


class UploadError(AppError):
    default_message = "Upload failed"


class InvalidFileType(UploadError):
    default_message = "Invalid file type. Only JPEG, PNG, GIF, and WebP images are allowed."


class FileTooLarge(UploadError):
    default_message = "File too large."


class TranscodeFailure(UploadError):
    status_code = 500
    default_message = "Failed to process image"


class PersistFailure(UploadError):
    status_code = 500
    default_message = "Failed to store image"


class AssociationFailure(UploadError):
    status_code = 500
    default_message = "Failed to save image reference"
