"""Exception handlers that render every failure as the standard response envelope."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import AppError, AuthenticationError, ValidationFailed
from app.schemas.envelope import fail

logger = logging.getLogger(__name__)

_VALUE_ERROR_PREFIX = "Value error, "
_LOCATION_ROOTS = frozenset({"body", "query", "path", "header", "cookie", "form"})


def field_errors(errors: Iterable[Mapping[str, Any]]) -> list[dict[str, str]]:
    """Flatten pydantic error dicts into [{field, message}]."""
    out: list[dict[str, str]] = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if str(p) not in _LOCATION_ROOTS]
        message = str(err.get("msg", "Invalid value"))
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        out.append({"field": ".".join(loc) or "body", "message": message})
    return out


def validation_failed_from(e: ValidationError) -> ValidationFailed:
    return ValidationFailed(errors=field_errors(e.errors()))


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    errors = exc.errors if isinstance(exc, ValidationFailed) else None
    if isinstance(exc, ValidationFailed) and errors:
        logger.warning(
            "Validation failed",
            extra={"path": request.url.path, "method": request.method, "errors": errors},
        )
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "method": request.method, "error": exc.message},
            exc_info=exc.cause,
        )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=fail(exc.message, errors),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return await app_error_handler(request, ValidationFailed(errors=field_errors(exc.errors())))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=fail(message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(status_code=500, content=fail("Something went wrong!"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
