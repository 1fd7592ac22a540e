#!/usr/bin/env python
"""Tests for the freshness policy (TimedCacheEntry and helpers).

Run with: pytest tests/test_freshness.py -v
"""

import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cache.freshness import (
    DAY_MS,
    HOUR_MS,
    MINUTE_MS,
    NEVER_EXPIRES,
    TimedCacheEntry,
    age_string,
    is_fresh,
)
from utils.errors import CachePolicyError

T0 = 1_700_000_000_000


# === Test 1: Fresh strictly before the window closes ===

def test_fresh_until_validity_elapses():
    validity = timedelta(hours=1)
    assert is_fresh(T0, T0, validity)
    assert is_fresh(T0, T0 + HOUR_MS - 1, validity)
    assert not is_fresh(T0, T0 + HOUR_MS, validity)


def test_freshness_is_monotonic():
    """Once stale, an entry never becomes fresh again as time advances."""
    entry = TimedCacheEntry(T0, timedelta(minutes=5))
    results = [entry.is_fresh(T0 + step * 30_000) for step in range(40)]
    first_stale = results.index(False)
    assert all(results[:first_stale])
    assert not any(results[first_stale:])


# === Test 2: Never-expiring entries ===

def test_never_expires():
    entry = TimedCacheEntry(T0, NEVER_EXPIRES)
    assert entry.is_fresh(T0)
    assert entry.is_fresh(T0 + 1000 * DAY_MS)


def test_zero_validity_is_never_fresh():
    assert not is_fresh(T0, T0, timedelta(0))


# === Test 3: Negative validity is a policy error ===

def test_negative_validity_rejected():
    with pytest.raises(CachePolicyError):
        TimedCacheEntry(T0, timedelta(seconds=-1))
    with pytest.raises(ValueError):
        is_fresh(T0, T0, timedelta(minutes=-5))


# === Test 4: Age strings ===

@pytest.mark.parametrize("age_ms, expected", [
    (0, "just now"),
    (MINUTE_MS - 1, "just now"),
    (MINUTE_MS, "1m ago"),
    (59 * MINUTE_MS + 59_999, "59m ago"),
    (HOUR_MS, "1h ago"),
    (23 * HOUR_MS + 59 * MINUTE_MS, "23h ago"),
    (DAY_MS, "1d ago"),
    (1000 * DAY_MS, "1000d ago"),
])
def test_age_string_buckets(age_ms, expected):
    assert age_string(T0, T0 + age_ms) == expected


def test_age_string_clock_skew():
    """A write time in the future reads as just now."""
    assert age_string(T0 + 10 * MINUTE_MS, T0) == "just now"
    assert TimedCacheEntry(T0, timedelta(hours=1)).age_string(T0 + 2 * HOUR_MS) == "2h ago"
