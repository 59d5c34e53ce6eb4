"""
Application exceptions.

Each carries an error code and HTTP status; the FastAPI handlers in main
render them as {"ok": false, "error": {...}}.
"""

from typing import Any


class AppException(Exception):
    """
    Base exception for all application errors.

    Attributes:
        error_code: Stable machine-readable code, e.g. "UNAUTHORIZED"
        status_code: HTTP status the API answers with
        details: Extra context, rendered verbatim into the response
    """

    def __init__(
        self,
        message: str,
        error_code: str = "APP_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        error = {"code": self.error_code, "message": self.message, "details": self.details}
        return {"error": error}


class DatabaseException(AppException):
    """A store operation failed and was rolled back."""

    def __init__(
        self,
        message: str = "Database operation failed",
        error_code: str = "DB_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, 500, details)


class DatabaseNotConfiguredException(DatabaseException):
    """Raised when a database session is requested without DATABASE_URL."""

    def __init__(self) -> None:
        super().__init__(
            "DATABASE_URL environment variable is not set",
            "DB_NOT_CONFIGURED",
        )


class UnauthorizedException(AppException):
    """Raised when a cron trigger does not present the expected secret."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, "UNAUTHORIZED", 401)


# Crawler Exceptions
class CrawlerException(AppException):
    """Base exception for crawler-related errors."""

    def __init__(
        self,
        message: str = "Crawler operation failed",
        error_code: str = "CRAWLER_ERROR",
        status_code: int = 500,
        source_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        _details = details or {}
        if source_id:
            _details["source_id"] = source_id
        super().__init__(message, error_code, status_code, _details)


class SourceRegistryException(CrawlerException):
    """Raised when the source registry cannot be read; a run cannot start without it."""

    def __init__(self, message: str = "Source registry unavailable") -> None:
        super().__init__(message, "SOURCE_REGISTRY_UNAVAILABLE", 503)
