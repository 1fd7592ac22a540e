"""Error types and retry helpers for campuscache.

This module provides a structured approach to error handling with:
- Typed error classifications
- A retry decorator for transient SQLite lock contention
- A clear split between recoverable runtime failures and programmer errors
"""

import logging
import sqlite3
from enum import Enum
from typing import Optional

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Classification of errors for appropriate handling."""

    # Recoverable errors - degrade to a cache miss
    STORE_IO = "store_io"
    DECODE = "decode"

    # Non-recoverable errors - caller bug
    INVALID_SCOPE = "invalid_scope"
    INVALID_POLICY = "invalid_policy"


class CacheError(Exception):
    """Base exception for cache-related errors."""

    def __init__(
        self,
        error_type: ErrorType,
        message: str,
        recoverable: bool = True,
        original_error: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        self.error_type = error_type
        self.message = message
        self.recoverable = recoverable
        self.original_error = original_error
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.error_type.value}] {self.message}"

    def to_dict(self) -> dict:
        """Convert to dictionary for diagnostics."""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class StoreError(CacheError):
    """Raised when the persistent store cannot be read or written."""

    def __init__(self, message: str = "Store operation failed", **kwargs):
        super().__init__(ErrorType.STORE_IO, message, recoverable=True, **kwargs)


class CacheDecodeError(CacheError):
    """Raised when a stored payload does not match its expected shape."""

    def __init__(self, message: str = "Cached payload could not be decoded", **kwargs):
        super().__init__(ErrorType.DECODE, message, recoverable=True, **kwargs)


class ScopeError(CacheError, ValueError):
    """Raised for a malformed scope (empty or illegal identity component)."""

    def __init__(self, message: str = "Invalid cache scope", **kwargs):
        super().__init__(ErrorType.INVALID_SCOPE, message, recoverable=False, **kwargs)


class CachePolicyError(CacheError, ValueError):
    """Raised for an invalid cache policy such as a negative validity."""

    def __init__(self, message: str = "Invalid cache policy", **kwargs):
        super().__init__(ErrorType.INVALID_POLICY, message, recoverable=False, **kwargs)


def _is_lock_contention(error: BaseException) -> bool:
    if not isinstance(error, sqlite3.OperationalError):
        return False
    text = str(error).lower()
    return "locked" in text or "busy" in text


def retry_on_locked(
    max_attempts: int = 3,
    min_wait: float = 0.05,
    max_wait: float = 1.0,
):
    """Retry decorator for SQLite writes that hit a locked database.

    Uses short exponential backoff; the last error is re-raised so the
    caller can wrap it in a StoreError.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=0.05, min=min_wait, max=max_wait),
        retry=retry_if_exception(_is_lock_contention),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            f"Cache database locked, retrying in {retry_state.next_action.sleep:.2f}s "
            f"(attempt {retry_state.attempt_number}/{max_attempts})"
        ),
    )


__all__ = [
    "ErrorType",
    "CacheError",
    "StoreError",
    "CacheDecodeError",
    "ScopeError",
    "CachePolicyError",
    "retry_on_locked",
]
