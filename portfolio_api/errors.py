"""API error classes mapped to HTTP responses by the handlers in main.py."""

from typing import Optional


class APIError(Exception):
    """
    Base class for API errors.

    Attributes:
        message: Human-readable error message returned as ``error``
        status_code: HTTP status code to return
        extra: Additional fields merged into the response body
    """

    status_code = 500

    def __init__(self, message: str, extra: Optional[dict] = None):
        self.message = message
        self.extra = extra or {}
        super().__init__(message)


class ValidationError(APIError):
    """Malformed or missing input (400)."""

    status_code = 400


class AuthError(APIError):
    """Missing, invalid or expired session or one-time code (401)."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", extra: Optional[dict] = None):
        super().__init__(message, extra)


class NotFoundError(APIError):
    """Requested entity does not exist (404)."""

    status_code = 404


class RateLimitError(APIError):
    """Too many attempts for an identifier (429)."""

    status_code = 429

    def __init__(self, retry_after: int, message: str = "Too many requests. Please try again later."):
        self.retry_after = retry_after
        super().__init__(message, {"retryAfter": retry_after})


class ConfigurationError(APIError):
    """Required deployment configuration is missing (500)."""


class UpstreamError(APIError):
    """Store or mail sender failure (500)."""
