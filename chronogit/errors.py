"""
Errors — Tagged failure taxonomy for the mirroring pipeline.

Every failure carries an explicit ``kind`` and a ``retryable`` flag, set at
the point the failure is detected (usually when mapping an HTTP status in
the gateway). Callers branch on the type or ``kind``, never on message text.

## Kinds

- configuration: missing credentials or destination, never retried
- transient: network failure, timeout, 5xx, unexpected 4xx
- rate_limited: 429, or 403 with an exhausted rate-limit budget
- not_found: 404, used as a control value for existence probes
- validation: remote payload did not match the expected schema
- conflict: content write rejected because the version token was stale
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure categories."""
    CONFIGURATION = "configuration"
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFLICT = "conflict"


class MirrorError(Exception):
    """Base class for all chronogit failures."""

    kind: ErrorKind = ErrorKind.TRANSIENT
    retryable: bool = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
    ):
        self.message = message
        self.status_code = status_code
        if retryable is not None:
            self.retryable = retryable
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.kind.value} {self.status_code}] {self.message}"
        return f"[{self.kind.value}] {self.message}"


class ConfigurationError(MirrorError):
    """Raised when credentials or the destination are missing or invalid."""
    kind = ErrorKind.CONFIGURATION
    retryable = False


class TransientRemoteError(MirrorError):
    """Network failure, timeout or server-side error."""
    kind = ErrorKind.TRANSIENT
    retryable = True


class RateLimitError(MirrorError):
    """The remote API refused the call because of rate limiting."""
    kind = ErrorKind.RATE_LIMITED
    retryable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class NotFoundError(MirrorError):
    """The requested repository or file does not exist."""
    kind = ErrorKind.NOT_FOUND
    retryable = False


class ValidationError(MirrorError):
    """A remote response failed schema validation."""
    kind = ErrorKind.VALIDATION
    retryable = False


class ConflictError(MirrorError):
    """A content write was rejected because the stored version moved."""
    kind = ErrorKind.CONFLICT
    retryable = True


class RetryExhaustedError(MirrorError):
    """Raised when an operation failed after retries without a captured error."""
    kind = ErrorKind.TRANSIENT
    retryable = False
