"""Freshness policy for cached records.

Pure functions of timestamps; no I/O. Timestamps are integer milliseconds
since the epoch, validity windows are timedeltas (or NEVER_EXPIRES).
"""

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from utils.errors import CachePolicyError

# Validity of records that stay fresh forever once written
NEVER_EXPIRES: Optional[timedelta] = None

Clock = Callable[[], int]

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def validate_validity(validity: Optional[timedelta]) -> Optional[timedelta]:
    """Reject negative validity windows.

    Raises:
        CachePolicyError: If validity is negative
    """
    if validity is not None and validity < timedelta(0):
        raise CachePolicyError(
            f"Validity must not be negative, got {validity}",
            context={"validity_seconds": validity.total_seconds()},
        )
    return validity


def is_fresh(cached_at_ms: int, now_ms: int, validity: Optional[timedelta]) -> bool:
    """Check whether a record cached at cached_at_ms is still fresh at now_ms.

    Args:
        cached_at_ms: When the record was written
        now_ms: Current time
        validity: Maximum age, or NEVER_EXPIRES

    Returns:
        True iff now - cached_at < validity (always True for NEVER_EXPIRES)
    """
    validate_validity(validity)
    if validity is None:
        return True
    validity_ms = int(validity.total_seconds() * 1000)
    return (now_ms - cached_at_ms) < validity_ms


def age_string(cached_at_ms: int, now_ms: int) -> str:
    """Human-readable age bucket: "just now", "5m ago", "3h ago", "2d ago"."""
    age_ms = max(now_ms - cached_at_ms, 0)
    minutes = age_ms // MINUTE_MS
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = age_ms // HOUR_MS
    if hours < 24:
        return f"{hours}h ago"
    return f"{age_ms // DAY_MS}d ago"


@dataclass(frozen=True)
class TimedCacheEntry:
    """Timestamp plus validity window of one cached record."""

    cached_at_ms: int
    validity: Optional[timedelta]

    def __post_init__(self):
        validate_validity(self.validity)

    def is_fresh(self, now_ms: int) -> bool:
        return is_fresh(self.cached_at_ms, now_ms, self.validity)

    def age_string(self, now_ms: int) -> str:
        return age_string(self.cached_at_ms, now_ms)


__all__ = [
    "NEVER_EXPIRES",
    "Clock",
    "now_millis",
    "validate_validity",
    "is_fresh",
    "age_string",
    "TimedCacheEntry",
]
