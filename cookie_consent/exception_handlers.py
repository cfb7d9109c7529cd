"""
Global Exception Handlers for Cookie Consent

Every failure reaches the banner script in one shape:

    {"status": "error", "message": "...", "type": "Bad Request", "details": {...}}

``details`` is only sent for client errors. Server-side failures always
carry the generic message; what actually went wrong is logged.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cookie_consent.exceptions import GENERIC_ERROR_MESSAGE, CookieConsentException

logger = logging.getLogger(__name__)

ERROR_TYPES = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    422: "Validation Error",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


def get_error_type(status_code: int) -> str:
    return ERROR_TYPES.get(status_code, "Error")


def create_error_response(status_code: int, message: str, details: dict[str, Any] | None = None) -> JSONResponse:
    """Build the JSON error body sent to clients."""
    content: dict[str, Any] = {
        "status": "error",
        "message": message,
        "type": get_error_type(status_code),
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


async def cookie_consent_exception_handler(request: Request, exc: CookieConsentException) -> JSONResponse:
    logger.error(
        f"{type(exc).__name__}: {exc.message}",
        extra={"status_code": exc.status_code, "path": request.url.path, "details": exc.details},
    )

    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return create_error_response(exc.status_code, GENERIC_ERROR_MESSAGE)
    return create_error_response(exc.status_code, exc.message, exc.details or None)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    return create_error_response(exc.status_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}", extra={"details": {"validation_errors": errors}})

    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        {"validation_errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log with traceback, answer with the generic message."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return create_error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CookieConsentException, cookie_consent_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    logger.debug("Exception handlers registered")
