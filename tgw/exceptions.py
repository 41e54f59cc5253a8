"""Custom exceptions for the Tumblr gateway."""

from typing import Any


class TGWError(Exception):
    """Base exception for all gateway errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize gateway error.

        Args:
            message: Error message
            details: Additional error details

        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(TGWError):
    """Raised when configuration is invalid or missing."""


class NetworkError(TGWError):
    """Raised when the transport fails before an upstream response arrives."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message, {"url": url} if url else None)
        self.url = url


class APIError(TGWError):
    """Base class for upstream API errors."""

    def __init__(
        self,
        status_code: int,
        message: str,
        response_text: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            status_code: HTTP status code (or envelope ``meta.status``)
            message: Error message
            response_text: Raw response text from API
            details: Additional error details

        """
        super().__init__(message, details)
        self.status_code = status_code
        self.response_text = response_text


class AuthenticationFailure(APIError):
    """Raised on 401/403 or when a call lacks usable credentials.

    The caller must re-run the authorization flow; the same credential is
    never retried.
    """

    def __init__(
        self,
        message: str = "Authentication failed",
        response_text: str | None = None,
        status_code: int = 401,
    ) -> None:
        super().__init__(status_code, message, response_text)


class NotFoundError(APIError):
    """Raised when resource is not found (404)."""

    def __init__(self, message: str = "Resource not found", response_text: str | None = None) -> None:
        super().__init__(404, message, response_text)


class QuotaExceededError(APIError):
    """Raised when the upstream answers 429."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        response_text: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(429, message, response_text)
        self.retry_after = retry_after


class PaginationBoundaryError(TGWError):
    """Raised when a page past the offset ceiling has no usable cursor."""

    def __init__(self, page: int, message: str) -> None:
        super().__init__(message, {"page": page})
        self.page = page


class CryptoIntegrityError(TGWError):
    """Raised when an encrypted credential fails authentication.

    Never a wrong-password condition: the stored credential is unusable and
    a fresh authorization flow is required.
    """


class ValidationError(TGWError):
    """Raised when input validation fails."""

    def __init__(self, field: str, value: Any, message: str) -> None:
        super().__init__(message, {"field": field, "value": value})
        self.field = field
        self.value = value
