"""Wire envelope shared by every endpoint: {success, data?, error?, errors?, message?}."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class FieldError(BaseModel):
    """One field-level validation problem."""

    field: str
    message: str


class ApiResponse(BaseModel, Generic[T]):
    """Successful or failed response; routes declare ApiResponse[Model] as response_model."""

    success: bool = True
    data: T | None = None
    message: str | None = None
    error: str | None = None
    errors: list[FieldError] | None = Field(
        default=None,
        description="Present only for validation failures",
    )


def ok(data: object = None, message: str | None = None) -> dict[str, object]:
    """Build a success envelope; keys with no value are omitted."""
    body: dict[str, object] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body


def fail(error: str, errors: list[dict[str, str]] | None = None) -> dict[str, object]:
    """Build a failure envelope; validation failures also carry per-field errors."""
    body: dict[str, object] = {"success": False, "error": error}
    if errors:
        body["errors"] = errors
    return body
