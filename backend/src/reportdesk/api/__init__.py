"""FastAPI routes and API modules for ReportDesk.

Provides the error envelope, exception classes and handlers shared by
every router.
"""

from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..exceptions import (
    Conflict,
    DomainError,
    InvalidCredentials,
    InvalidInput,
    NotFound,
    PermissionDenied,
)


# =========================
# Response Models
# =========================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Standard error response: ``{message, error_code, details?}``."""

    message: str
    error_code: str
    details: list[ErrorDetail] | None = None


# =========================
# Exception Classes
# =========================


class APIError(HTTPException):
    """Base API error with structured response."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: list[ErrorDetail] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message, headers=headers)


class AuthenticationError(APIError):
    """Authentication required error."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            status_code=401,
            error_code="AUTHENTICATION_REQUIRED",
            message=message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(APIError):
    """Authorization denied error."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(
            status_code=403,
            error_code="ACCESS_DENIED",
            message=message,
        )


class RateLimitError(APIError):
    """Rate limit exceeded error."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            status_code=429,
            error_code="RATE_LIMIT_EXCEEDED",
            message=f"Rate limit exceeded. Retry after {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )
        self.retry_after = retry_after


# =========================
# Exception Handlers
# =========================

_DOMAIN_STATUS: list[tuple[type[DomainError], int]] = [
    (NotFound, 404),
    (InvalidCredentials, 401),
    (PermissionDenied, 403),
    (Conflict, 409),
    (InvalidInput, 400),
]


def error_response(
    status_code: int,
    message: str,
    error_code: str,
    details: list[ErrorDetail] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    merged_headers = {"X-Error-Code": error_code, **(headers or {})}
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            message=message,
            error_code=error_code,
            details=details,
        ).model_dump(exclude_none=True),
        headers=merged_headers,
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    return error_response(
        exc.status_code, exc.message, exc.error_code, exc.details, exc.headers
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map service-level exceptions onto HTTP status codes."""
    status_code = 400
    for exc_type, code in _DOMAIN_STATUS:
        if isinstance(exc, exc_type):
            status_code = code
            break
    return error_response(status_code, exc.message, exc.code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle generic HTTPException."""
    return error_response(
        exc.status_code, str(exc.detail), "HTTP_ERROR", headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed path identifiers become 400; body errors stay 422."""
    errors = exc.errors()
    details = [
        ErrorDetail(
            code=str(err.get("type", "invalid")),
            message=str(err.get("msg", "Invalid value")),
            field=".".join(str(part) for part in err.get("loc", ())),
        )
        for err in errors
    ]
    if errors and all(err.get("loc", ("",))[0] == "path" for err in errors):
        return error_response(400, "Invalid identifier", "INVALID_ID", details)
    return error_response(422, "Request validation failed", "VALIDATION_ERROR", details)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    from ..logging import get_logger

    logger = get_logger(__name__)
    logger.exception(f"Unhandled exception: {exc}")

    return error_response(500, "An unexpected error occurred", "INTERNAL_ERROR")


def register_exception_handlers(app):
    """Register exception handlers with the FastAPI app."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
