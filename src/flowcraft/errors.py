"""
Error taxonomy for FlowCraft.

Every error carries a human-readable ``message`` and an optional HTTP
``status_code``. ``kind`` tags the variant and ``retryable`` tells the
request engine whether another attempt may succeed.

API variants all derive directly from :class:`APIError`, which doubles as
the generic variant for unclassified server responses. Precondition
failures raised by the services (missing key, unknown diagram, unsupported
operation) derive from :class:`FlowCraftError` and never reach the network.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Tag identifying each error variant."""

    GENERIC = "generic"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK = "network"
    DECODE = "decode"
    MISSING_API_KEY = "missing_api_key"
    NOT_FOUND = "not_found"
    UNSUPPORTED = "unsupported"


class FlowCraftError(Exception):
    """Base class for every error raised by this package."""

    kind: ErrorKind = ErrorKind.GENERIC
    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"status_code={self.status_code!r})"
        )


# ---------------------------------------------------------------------------
# API errors
# ---------------------------------------------------------------------------


class APIError(FlowCraftError):
    """Generic API failure (server errors, body-embedded errors)."""

    kind = ErrorKind.GENERIC
    retryable = True


class AuthenticationError(APIError):
    """The API rejected the credentials (HTTP 401/403)."""

    kind = ErrorKind.AUTHENTICATION
    retryable = False

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Any = None,
        status_code: int = 401,
    ) -> None:
        super().__init__(message, status_code, details)


class RateLimitError(APIError):
    """Too many requests (HTTP 429)."""

    kind = ErrorKind.RATE_LIMIT
    retryable = True

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, 429, details)
        self.retry_after = retry_after  # seconds


class ValidationError(APIError):
    """The request was rejected as invalid (HTTP 400)."""

    kind = ErrorKind.VALIDATION
    retryable = False

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message, 400, details)


class QuotaExceededError(APIError):
    """The usage quota is exhausted (HTTP 402)."""

    kind = ErrorKind.QUOTA_EXCEEDED
    retryable = False

    def __init__(self, message: str = "Usage quota exceeded", details: Any = None) -> None:
        super().__init__(message, 402, details)


class NetworkError(APIError):
    """Transport-level failure; no response was received."""

    kind = ErrorKind.NETWORK
    retryable = True

    def __init__(self, message: str = "Network request failed", details: Any = None) -> None:
        super().__init__(message, None, details)


class ResponseDecodeError(APIError):
    """A successful response body could not be decoded into the expected shape."""

    kind = ErrorKind.DECODE
    retryable = False


# ---------------------------------------------------------------------------
# Precondition errors
# ---------------------------------------------------------------------------


class MissingAPIKeyError(FlowCraftError):
    """No API key is stored for the active provider."""

    kind = ErrorKind.MISSING_API_KEY

    def __init__(self, provider: str) -> None:
        super().__init__(f"No API key configured for {provider}")
        self.provider = provider


class DiagramNotFoundError(FlowCraftError):
    """No diagram exists with the requested id."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, diagram_id: str) -> None:
        super().__init__(f"Diagram not found: {diagram_id}")
        self.diagram_id = diagram_id


class UnsupportedOperationError(FlowCraftError):
    """The operation is not available for the given input."""

    kind = ErrorKind.UNSUPPORTED
