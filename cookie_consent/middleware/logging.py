"""
Structured Logging

JSON request logging for the consent endpoints plus the logging setup
shared by the web app and the archive CLI.

Every access line carries a request ID, timing and the client IP. When the
request holds a well-formed consent cookie its uuid is added, so a log
line can be matched against the stored consent record.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Record attributes copied into the JSON output when present
EXTRA_FIELDS = ["method", "path", "status_code", "duration_ms", "client_ip", "consent_uuid", "details"]

# Probe endpoints are not logged
QUIET_PATHS = {"/health", "/ready"}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"

LOGGER_LEVELS = {
    "uvicorn": "WARNING",
    "uvicorn.access": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "apscheduler": "WARNING",
}


class RequestIdFilter(logging.Filter):
    """Stamp each record with the current request ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update({key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)})
        return json.dumps(log_data, default=str)


def resolve_client_ip(request: Request) -> str:
    """First address of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def consent_uuid_of(request: Request) -> str | None:
    """uuid of the consent cookie, if a consent route decoded one for this request."""
    cache = getattr(request.state, "consent_cache", None)
    payload = cache.payload if cache is not None else None
    return payload.uuid if payload is not None else None


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one access line per request and echoes the request ID header."""

    def __init__(self, app: ASGIApp, logger_name: str = "cookie_consent.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            self._log_request(request, 500, started, request_id, error=str(e))
            raise

        response.headers["X-Request-ID"] = request_id
        self._log_request(request, response.status_code, started, request_id)
        return response

    def _log_request(
        self,
        request: Request,
        status_code: int,
        started: float,
        request_id: str,
        error: str | None = None,
    ) -> None:
        if request.url.path in QUIET_PATHS:
            return

        duration_ms = (time.perf_counter() - started) * 1000
        extra = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": resolve_client_ip(request),
        }
        consent_uuid = consent_uuid_of(request)
        if consent_uuid:
            extra["consent_uuid"] = consent_uuid

        message = f"{request.method} {request.url.path} - {status_code} ({duration_ms:.2f}ms)"
        if error:
            message += f" - Error: {error}"

        self.logger.log(level_for_status(status_code), message, extra=extra)


def setup_structured_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None,
) -> None:
    """
    Configure root logging for the web app and the archive CLI.

    Args:
        log_level: Level for the cookie_consent loggers (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines when True, plain text otherwise
        log_file: Write to this file instead of stderr
    """
    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.setFormatter(StructuredFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    handler.addFilter(RequestIdFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for logger_name, level in {"cookie_consent": log_level, **LOGGER_LEVELS}.items():
        logging.getLogger(logger_name).setLevel(level.upper())


def get_request_id() -> str:
    return request_id_var.get("")
