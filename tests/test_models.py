#!/usr/bin/env python
"""Tests for payload models and codec helpers.

Run with: pytest tests/test_models.py -v
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from models.codec import decode_envelope, encode_envelope
from models.feed import FeedItemSchema, FeedPage, TimestampBounds, attribute_value
from models.subject import Subject
from utils.errors import CacheDecodeError


# === Test 1: Feed item attributes ===

def test_attribute_value_unwraps_typed_values():
    record = {"itemId": {"N": "12"}, "title": {"S": "Holiday"}, "plain": 5, "nested": {"a": 1}}
    assert attribute_value(record, "itemId") == "12"
    assert attribute_value(record, "title") == "Holiday"
    assert attribute_value(record, "plain") == 5
    assert attribute_value(record, "nested") == {"a": 1}
    assert attribute_value(record, "missing") is None


@pytest.mark.parametrize("raw, expected", [
    ({"N": "1700000000"}, 1700000000),
    ("1700000000.9", 1700000000),
    (1700000000, 1700000000),
    ({"S": "soon"}, 0),
    (True, 0),
    (None, 0),
])
def test_schema_timestamp(raw, expected):
    assert FeedItemSchema().timestamp({"timeStamp": raw}) == expected


def test_schema_key_normalises_types():
    schema = FeedItemSchema()
    assert schema.key({"itemId": {"N": "1"}, "timeStamp": {"N": "100"}}) == ("1", "100")
    assert schema.key({"itemId": 1, "timeStamp": 100}) == ("1", "100")
    assert schema.key({}) == ("", "")


# === Test 2: Bounds ===

def test_bounds_widen_and_ignore_missing_timestamps():
    bounds = TimestampBounds().widened([0, 300, 100])
    assert (bounds.oldest, bounds.newest) == (100, 300)
    bounds = bounds.widened([50])
    assert (bounds.oldest, bounds.newest) == (50, 300)
    assert TimestampBounds().widened([0]) == TimestampBounds()


def test_bounds_decoding_rejects_non_integers():
    assert TimestampBounds.from_dict({"oldest": None, "newest": 5}) == TimestampBounds(None, 5)
    with pytest.raises(CacheDecodeError):
        TimestampBounds.from_dict({"oldest": "5"})
    with pytest.raises(CacheDecodeError):
        TimestampBounds.from_dict({"oldest": True})


# === Test 3: Strict decoding ===

def test_feed_page_requires_known_shape():
    page = FeedPage.from_dict({"items": [{"itemId": 1}], "has_more": False})
    assert page.next_page is None
    with pytest.raises(CacheDecodeError):
        FeedPage.from_dict({"items": [], "has_more": "yes"})
    with pytest.raises(CacheDecodeError):
        FeedPage.from_dict({"items": [1], "has_more": True})
    with pytest.raises(CacheDecodeError):
        FeedPage.from_dict({"items": [], "has_more": True, "extra": 1})


def test_subject_requires_is_optional():
    with pytest.raises(CacheDecodeError):
        Subject.from_dict({"name": "Physics"})


def test_envelope_version_check():
    text = encode_envelope(3, {"a": "ü"})
    assert decode_envelope(text, 3, "thing") == {"a": "ü"}
    with pytest.raises(CacheDecodeError) as exc_info:
        decode_envelope(text, 4, "thing")
    assert exc_info.value.context == {"stored_version": 3, "expected_version": 4}
    with pytest.raises(CacheDecodeError):
        decode_envelope("", 3, "thing")
