"""
Firebase MCP error types.

Custom exceptions with MCP-friendly error codes.
"""

from __future__ import annotations

BUCKET_MISSING_MARKER = "bucket does not exist"


class FirebaseMcpError(Exception):
    """Base error for Firebase MCP operations."""

    code: str = "FIREBASE_MCP_ERROR"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class NotInitializedError(FirebaseMcpError):
    """No Firebase app available (missing credentials or config)."""

    code = "NOT_INITIALIZED"

    def __init__(
        self,
        message: str = (
            "Firebase is not initialized. "
            "SERVICE_ACCOUNT_KEY_PATH environment variable is required."
        ),
        *,
        code: str | None = None,
    ):
        super().__init__(message, code=code)


class NotFoundError(FirebaseMcpError):
    """Document, file or user does not exist."""

    code = "NOT_FOUND"


class BucketUnreachableError(FirebaseMcpError):
    """Storage bucket could not be resolved or does not exist."""

    code = "BUCKET_UNREACHABLE"


class InvalidQueryError(FirebaseMcpError):
    """Bad filter field, operator or value."""

    code = "INVALID_QUERY"


class InvalidArgumentError(FirebaseMcpError):
    """A tool argument has the wrong type or range."""

    code = "INVALID_ARGUMENT"


class BackendError(FirebaseMcpError):
    """Any other failure reported by a backend service."""

    code = "BACKEND_ERROR"


def is_bucket_missing(message: str) -> bool:
    """True when a backend error message reports a missing bucket."""
    return BUCKET_MISSING_MARKER in message


def positive_int(value: object, name: str) -> int:
    """
    Paging sizes arrive as JSON; accept ints, integral floats and digit strings.

    Raises:
        InvalidArgumentError: value is not a whole number >= 1
    """
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidArgumentError(f"{name} must be a positive integer")
    return value
