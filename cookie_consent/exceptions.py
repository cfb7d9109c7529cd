"""
Custom Exception Classes for Cookie Consent

This module defines custom exceptions for better error handling and
consistent error responses across the HTTP handlers and the archive CLI.
"""

from typing import Any

from fastapi import status

GENERIC_ERROR_MESSAGE = "An error occurred while processing your request. Please try again later."


class CookieConsentException(Exception):
    """Base exception class for all cookie consent exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Validation Exceptions
# ============================================================================


class ValidationError(CookieConsentException):
    """Raised when input validation fails"""

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=error_details)


class UnsupportedFormatError(ValidationError):
    """Raised when an archive output format is not supported"""

    def __init__(self, output_format: str, supported_formats: list[str]):
        quoted = ", ".join(f'"{fmt}"' for fmt in supported_formats)
        super().__init__(
            message=f"Output format '{output_format}' not supported, the supported ones are {quoted}.",
            field="output_format",
            details={"output_format": output_format, "supported_formats": supported_formats},
        )


# ============================================================================
# Database & Service Exceptions
# ============================================================================


class DatabaseError(CookieConsentException):
    """Raised when a database operation fails"""

    def __init__(self, message: str = "A database error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)


class ConsentProcessingError(CookieConsentException):
    """Raised when a consent request fails; the message is safe to show to clients"""

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE):
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class ArchiveExportError(CookieConsentException):
    """Raised when archived records could not be written to the export file"""

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Failed to write archive export to {path}: {reason}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"path": path},
        )
