"""
Error taxonomy for the SDK.

Every provider-native failure is translated into an AIError before it
reaches the caller.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Kinds of failure surfaced to callers."""
    RATE_LIMITED = "rate_limited"        # Provider throttled the call
    QUOTA_EXCEEDED = "quota_exceeded"    # Local tier quota exhausted
    PROVIDER_ERROR = "provider_error"    # Non-2xx, network or malformed body
    INVALID_REQUEST = "invalid_request"  # Request cannot be represented
    AUTH_ERROR = "auth_error"            # Credentials or edition rejected


class AIError(Exception):
    """Single error type raised by the client and every provider adapter.

    Attributes:
        kind: Error category
        message: Human-readable description
        provider: Provider name, when the failure is provider-related
        provider_detail: Provider-native context (status code, body, ...)
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        provider: Optional[str] = None,
        provider_detail: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider = provider
        self.provider_detail = provider_detail or {}

    def __repr__(self) -> str:
        return f"AIError(kind={self.kind.name}, message={self.message!r}, provider={self.provider!r})"


class QuotaExceededError(AIError):
    """Raised when admission control rejects a call.

    Names the violated window so callers can decide whether to back off
    seconds, hours, or until next month.
    """

    def __init__(self, window: str, limit: int, used: int, retry_after: float, message: str):
        super().__init__(
            ErrorKind.QUOTA_EXCEEDED,
            message,
            provider_detail={"window": window, "limit": limit, "used": used},
        )
        self.window = window
        self.limit = limit
        self.used = used
        self.retry_after = retry_after


def invalid_request(message: str, provider: Optional[str] = None) -> AIError:
    return AIError(ErrorKind.INVALID_REQUEST, message, provider)


def auth_error(message: str, provider: Optional[str] = None) -> AIError:
    return AIError(ErrorKind.AUTH_ERROR, message, provider)


def classify_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code from a provider to an error kind.

    Args:
        status_code: HTTP status returned by the provider

    Returns:
        AUTH_ERROR for 401/403, RATE_LIMITED for 429, PROVIDER_ERROR otherwise
    """
    if status_code in (401, 403):
        return ErrorKind.AUTH_ERROR
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    return ErrorKind.PROVIDER_ERROR


def from_status(
    status_code: int,
    message: str,
    provider: str,
    body: Any = None,
) -> AIError:
    """Build an AIError for a non-2xx provider response."""
    kind = classify_status(status_code)
    detail: Dict[str, Any] = {"status_code": status_code}
    if body is not None:
        detail["body"] = body
    return AIError(kind, f"{provider} returned HTTP {status_code}: {message}", provider, detail)
