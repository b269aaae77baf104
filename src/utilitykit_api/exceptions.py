"""Custom exception hierarchy for the API client."""
from __future__ import annotations

from enum import Enum
from typing import Any


class APIErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to callers."""

    INVALID_URL = "invalid_url"
    REQUEST_FAILED = "request_failed"
    INVALID_RESPONSE = "invalid_response"
    DECODING_FAILED = "decoding_failed"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    SESSION_EXPIRED = "session_expired"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    NO_INTERNET = "no_internet"
    NOT_CONFIGURED = "not_configured"
    CUSTOM = "custom"


class APIError(RuntimeError):
    """Base error for every failure raised by the request engine."""

    kind: APIErrorKind = APIErrorKind.CUSTOM
    default_message = "Something went wrong."

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        details: Any | None = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.status_code = status_code
        self.details = details

    @property
    def description(self) -> str:
        """User-facing message for this failure."""
        return str(self)


class InvalidURLError(APIError):
    """Raised when the base URL and endpoint path do not form a valid URL."""

    kind = APIErrorKind.INVALID_URL
    default_message = "The URL is invalid."


class RequestFailedError(APIError):
    """Raised when the transport layer fails (DNS, connect, timeout, TLS)."""

    kind = APIErrorKind.REQUEST_FAILED

    def __init__(self, cause: BaseException, *, details: Any | None = None) -> None:
        reason = str(cause).strip() or cause.__class__.__name__
        super().__init__(f"Request failed: {reason}", details=details or reason)
        self.cause = cause


class InvalidResponseError(APIError):
    kind = APIErrorKind.INVALID_RESPONSE
    default_message = "Invalid response from server."


class DecodingFailedError(APIError):
    kind = APIErrorKind.DECODING_FAILED
    default_message = "Failed to decode server response."


class UnauthorizedError(APIError):
    kind = APIErrorKind.UNAUTHORIZED
    default_message = "You're not authorized. Please log in again."


class ForbiddenError(APIError):
    kind = APIErrorKind.FORBIDDEN
    default_message = "Access is forbidden."


class SessionExpiredError(APIError):
    kind = APIErrorKind.SESSION_EXPIRED
    default_message = "Session expired. Please log in again."


class TokenRefreshFailedError(APIError):
    kind = APIErrorKind.TOKEN_REFRESH_FAILED
    default_message = "Failed to refresh session."


class NoInternetError(APIError):
    kind = APIErrorKind.NO_INTERNET
    default_message = "No internet connection."


class NotConfiguredError(APIError):
    kind = APIErrorKind.NOT_CONFIGURED
    default_message = "No api configuration found."


class CustomAPIError(APIError):
    """Carry an application-defined message verbatim."""

    kind = APIErrorKind.CUSTOM

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class TokenStoreError(RuntimeError):
    """Raised when the secure store cannot read or write an entry."""
