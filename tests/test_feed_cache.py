#!/usr/bin/env python
"""Tests for the paginated feed cache.

Covers:
- Empty / partial / complete states and the terminal history flag
- cache_feed normalisation, idempotence and timestamp bounds
- merge_new_items and append_to_cache dedup, ordering and cursor handling
- No-op writes leave the cache time untouched
- should_check_for_new_items throttling, including concurrent callers
- Per-scope locks are released once no operation needs them
- Corrupt records and store failures degrade to a miss

Run with: pytest tests/test_feed_cache.py -v
"""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cache.database import CacheDatabase
from cache.domain_cache import PAYLOAD_FIELD
from cache.feed_cache import LAST_CHECK_FIELD, FeedCacheService
from cache.freshness import MINUTE_MS
from cache.memory_store import MemoryStore
from cache.store import CacheStore, ScopeKey
from models.feed import FeedItemSchema, FeedState
from utils.errors import ScopeError, StoreError

T0 = 1_700_000_000_000
USER, TENANT, SESSION = 1042, "dps", "7"


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def item(item_id, ts, **extra):
    """Portal-shaped feed item with attribute-typed id and timestamp."""
    record = {"itemId": {"N": str(item_id)}, "timeStamp": {"N": str(ts)}}
    record.update(extra)
    return record


def ids(items):
    return [i["itemId"]["N"] for i in items]


class FailingStore(MemoryStore):
    """MemoryStore whose writes fail, for degradation tests."""

    async def set_many(self, values):
        raise StoreError("disk full")

    async def compare_and_set_int(self, key, expected, new):
        raise StoreError("disk full")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "sqlite":
        return CacheStore(CacheDatabase(tmp_path / "cache.db"))
    return CacheStore(MemoryStore())


@pytest.fixture
def feed(store, clock):
    return FeedCacheService(store, clock=clock)


# === Test 1: Scenario 1 - empty cache ===

@pytest.mark.asyncio
async def test_empty_cache_returns_none(feed):
    assert await feed.get_cached_feed(USER, TENANT, SESSION) is None
    assert await feed.get_feed_state(USER, TENANT, SESSION) == FeedState.EMPTY
    assert await feed.get_cache_age_string(USER, TENANT, SESSION) == ""
    assert await feed.get_cache_status(USER, TENANT, SESSION) == {"cached": False, "state": "empty"}


# === Test 2: Scenario 2 - one page cached within the window ===

@pytest.mark.asyncio
async def test_cache_feed_then_read(feed, clock):
    assert await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)], next_page="p2", has_more=True)

    clock.advance(4 * MINUTE_MS)
    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert ids(cached.items) == ["1"]
    assert cached.is_valid is True
    assert cached.has_more is True
    assert cached.next_page == "p2"
    assert cached.all_history_loaded is False
    assert cached.state == FeedState.PARTIAL
    assert cached.cached_at_ms == T0
    assert await feed.get_cache_age_string(USER, TENANT, SESSION) == "4m ago"

    clock.advance(MINUTE_MS)
    assert (await feed.get_cached_feed(USER, TENANT, SESSION)).is_valid is False


# === Test 3: Scenario 3 - append older page, terminal flag ===

@pytest.mark.asyncio
async def test_append_reaches_complete_and_stays_complete(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)], next_page="p2", has_more=True)

    merged = await feed.append_to_cache(USER, TENANT, SESSION, [item(2, 50)], next_page=None, has_more=False)
    assert ids(merged) == ["1", "2"]

    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert ids(cached.items) == ["1", "2"]
    assert cached.all_history_loaded is True
    assert cached.has_more is False
    assert cached.next_page is None
    assert await feed.get_feed_state(USER, TENANT, SESSION) == FeedState.COMPLETE

    await feed.append_to_cache(USER, TENANT, SESSION, [item(3, 10)], next_page="p9", has_more=True)
    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert ids(cached.items) == ["1", "2", "3"]
    assert cached.all_history_loaded is True
    assert cached.has_more is False
    assert cached.next_page is None


@pytest.mark.asyncio
async def test_cache_feed_cannot_reset_terminal_flag(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)], has_more=False)
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)], next_page="p2", has_more=True)

    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert cached.all_history_loaded is True
    assert cached.has_more is False
    assert cached.next_page is None


@pytest.mark.asyncio
async def test_clear_returns_scope_to_empty(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)], has_more=False)
    await feed.clear_cache(USER, TENANT, SESSION)
    assert await feed.get_feed_state(USER, TENANT, SESSION) == FeedState.EMPTY

    await feed.cache_feed(USER, TENANT, SESSION, [item(2, 200)], next_page="p2", has_more=True)
    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert cached.all_history_loaded is False
    assert cached.has_more is True
    assert cached.oldest_timestamp == 200
    assert cached.newest_timestamp == 200


# === Test 4: Scenario 4 - no-op merge ===

@pytest.mark.asyncio
async def test_noop_merge_returns_existing_without_write(feed, clock):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)], next_page="p2")
    clock.advance(2 * MINUTE_MS)

    result = await feed.merge_new_items(USER, TENANT, SESSION, [item(1, 100)])
    assert ids(result) == ["1"]

    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert ids(cached.items) == ["1"]
    assert cached.cached_at_ms == T0


# === Test 5: Merge semantics ===

@pytest.mark.asyncio
async def test_merge_prepends_new_items_sorted(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(2, 200), item(1, 100)], next_page="p2")

    result = await feed.merge_new_items(
        USER, TENANT, SESSION,
        [item(4, 400), item(2, 200), item(3, 300), item(4, 400)],
    )
    assert ids(result) == ["4", "3", "2", "1"]
    assert ids((await feed.get_cached_feed(USER, TENANT, SESSION)).items) == ["4", "3", "2", "1"]


@pytest.mark.asyncio
async def test_merge_keeps_cursor_when_none_given(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)], next_page="p2", has_more=True)
    await feed.merge_new_items(USER, TENANT, SESSION, [item(2, 200)], next_page=None, has_more=True)

    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert cached.next_page == "p2"
    assert cached.has_more is True


@pytest.mark.asyncio
async def test_merge_uses_fresher_cursor(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)], next_page="p2")
    await feed.merge_new_items(USER, TENANT, SESSION, [item(2, 200)], next_page="p3")
    assert (await feed.get_cached_feed(USER, TENANT, SESSION)).next_page == "p3"


@pytest.mark.asyncio
async def test_merge_without_more_clears_cursor(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)], next_page="p2")
    await feed.merge_new_items(USER, TENANT, SESSION, [item(2, 200)], next_page=None, has_more=False)

    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert cached.next_page is None
    assert cached.all_history_loaded is True


@pytest.mark.asyncio
async def test_merge_into_empty_cache(feed):
    result = await feed.merge_new_items(USER, TENANT, SESSION, [item(1, 100), item(2, 200)], next_page="p2")
    assert ids(result) == ["2", "1"]
    assert (await feed.get_cached_feed(USER, TENANT, SESSION)).next_page == "p2"


@pytest.mark.asyncio
async def test_empty_inputs_are_noops(feed):
    assert await feed.merge_new_items(USER, TENANT, SESSION, []) == []
    assert await feed.append_to_cache(USER, TENANT, SESSION, [], has_more=False) == []
    assert await feed.get_feed_state(USER, TENANT, SESSION) == FeedState.EMPTY


# === Test 6: Append semantics ===

@pytest.mark.asyncio
async def test_noop_append_does_not_touch_storage(feed, clock):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100), item(2, 50)], next_page="p2")
    clock.advance(MINUTE_MS)

    result = await feed.append_to_cache(USER, TENANT, SESSION, [item(2, 50)], next_page="p3", has_more=False)
    assert ids(result) == ["1", "2"]

    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert cached.cached_at_ms == T0
    assert cached.next_page == "p2"
    assert cached.all_history_loaded is False


@pytest.mark.asyncio
async def test_same_id_different_timestamp_is_distinct(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)])
    result = await feed.append_to_cache(USER, TENANT, SESSION, [item(1, 90)])
    assert [(i["itemId"]["N"], i["timeStamp"]["N"]) for i in result] == [("1", "100"), ("1", "90")]


# === Test 7: Normalisation, sort order and bounds ===

@pytest.mark.asyncio
async def test_items_without_timestamp_sort_last(feed):
    undated = {"itemId": {"N": "9"}, "title": {"S": "no date"}}
    garbled = {"itemId": {"N": "8"}, "timeStamp": {"S": "yesterday"}}
    await feed.cache_feed(USER, TENANT, SESSION, [undated, item(1, 100), garbled, item(2, 200)])

    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert ids(cached.items) == ["2", "1", "9", "8"]
    assert cached.oldest_timestamp == 100
    assert cached.newest_timestamp == 200


@pytest.mark.asyncio
async def test_stable_sort_keeps_tie_order(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item("a", 100), item("b", 100)])
    result = await feed.merge_new_items(USER, TENANT, SESSION, [item("c", 100)])
    assert ids(result) == ["c", "a", "b"]


@pytest.mark.asyncio
async def test_overwrite_recomputes_bounds(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100), item(2, 500)])
    await feed.cache_feed(USER, TENANT, SESSION, [item(3, 300)])

    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert ids(cached.items) == ["3"]
    assert cached.oldest_timestamp == 300
    assert cached.newest_timestamp == 300


@pytest.mark.asyncio
async def test_bounds_widen_across_merge_and_append(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(2, 300)])
    await feed.merge_new_items(USER, TENANT, SESSION, [item(3, 500)])
    await feed.append_to_cache(USER, TENANT, SESSION, [item(1, 100)])

    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert cached.oldest_timestamp == 100
    assert cached.newest_timestamp == 500


@pytest.mark.asyncio
async def test_recache_is_idempotent(feed):
    items = [item(1, 100), item(2, 200), item(1, 100)]
    await feed.cache_feed(USER, TENANT, SESSION, items, next_page="p2", has_more=True)
    once = await feed.get_cached_feed(USER, TENANT, SESSION)
    await feed.cache_feed(USER, TENANT, SESSION, items, next_page="p2", has_more=True)
    twice = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert once == twice
    assert ids(twice.items) == ["2", "1"]


@pytest.mark.asyncio
async def test_dedup_and_sort_invariants_over_many_operations(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(i, i * 10) for i in range(10, 20)])
    for start in range(0, 30, 4):
        batch = [item(i, i * 10) for i in range(start, start + 6)]
        if start % 8:
            await feed.merge_new_items(USER, TENANT, SESSION, batch)
        else:
            await feed.append_to_cache(USER, TENANT, SESSION, batch)

    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    schema = FeedItemSchema()
    keys = [schema.key(i) for i in cached.items]
    timestamps = [schema.timestamp(i) for i in cached.items]
    assert len(keys) == len(set(keys))
    assert timestamps == sorted(timestamps, reverse=True)


@pytest.mark.asyncio
async def test_plain_scalar_fields_and_custom_schema(store, clock):
    feed = FeedCacheService(store, clock=clock, schema=FeedItemSchema("id", "ts"))
    await feed.cache_feed(USER, TENANT, SESSION, [{"id": 1, "ts": 10}, {"id": 2, "ts": 30}])
    result = await feed.merge_new_items(USER, TENANT, SESSION, [{"id": 1, "ts": 10}, {"id": 3, "ts": 20}])
    assert [i["id"] for i in result] == [2, 3, 1]


# === Test 8: Concurrent merges do not lose items ===

@pytest.mark.asyncio
async def test_concurrent_merges_keep_all_items(feed):
    await feed.cache_feed(USER, TENANT, SESSION, [item(0, 1)])
    await asyncio.gather(*[
        feed.merge_new_items(USER, TENANT, SESSION, [item(i, i + 1)]) for i in range(1, 11)
    ])
    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert sorted(int(i) for i in ids(cached.items)) == list(range(11))


# === Test 9: New-item check throttling ===

@pytest.mark.asyncio
async def test_should_check_once_per_interval(feed, clock):
    assert await feed.should_check_for_new_items(USER, TENANT, SESSION) is True
    assert await feed.should_check_for_new_items(USER, TENANT, SESSION) is False

    clock.advance(5 * MINUTE_MS - 1)
    assert await feed.should_check_for_new_items(USER, TENANT, SESSION) is False

    clock.advance(1)
    assert await feed.should_check_for_new_items(USER, TENANT, SESSION) is True
    assert await feed.should_check_for_new_items(USER, TENANT, SESSION) is False


@pytest.mark.asyncio
async def test_should_check_recovers_from_unreadable_check_time(feed, store, clock):
    scope = ScopeKey("feed", TENANT, str(USER), SESSION)
    await store.set_string(scope, LAST_CHECK_FIELD, "garbage")

    assert await feed.should_check_for_new_items(USER, TENANT, SESSION) is True
    assert await store.get_int(scope, LAST_CHECK_FIELD) == T0
    assert await feed.should_check_for_new_items(USER, TENANT, SESSION) is False

    clock.advance(5 * MINUTE_MS)
    assert await feed.should_check_for_new_items(USER, TENANT, SESSION) is True


@pytest.mark.asyncio
async def test_should_check_concurrent_callers_single_grant(feed, clock):
    results = await asyncio.gather(*[
        feed.should_check_for_new_items(USER, TENANT, SESSION) for _ in range(8)
    ])
    assert results.count(True) == 1

    clock.advance(10 * MINUTE_MS)
    results = await asyncio.gather(*[
        feed.should_check_for_new_items(USER, TENANT, SESSION) for _ in range(8)
    ])
    assert results.count(True) == 1


@pytest.mark.asyncio
async def test_should_check_is_per_scope(feed):
    assert await feed.should_check_for_new_items(USER, TENANT, "7") is True
    assert await feed.should_check_for_new_items(USER, TENANT, "8") is True
    assert await feed.should_check_for_new_items(USER, "other", "7") is True


@pytest.mark.asyncio
async def test_custom_check_interval(store, clock):
    feed = FeedCacheService(store, clock=clock, check_interval=timedelta(seconds=30))
    assert await feed.should_check_for_new_items(USER, TENANT, SESSION)
    clock.advance(30_000)
    assert await feed.should_check_for_new_items(USER, TENANT, SESSION)


# === Test 10: Scope isolation and validation ===

@pytest.mark.asyncio
async def test_scopes_are_isolated(feed):
    await feed.cache_feed(USER, TENANT, "7", [item(1, 100)], has_more=False)
    assert await feed.get_cached_feed(USER, TENANT, "8") is None
    assert await feed.get_cached_feed(9999, TENANT, "7") is None
    assert await feed.get_cached_feed(USER, "other", "7") is None


@pytest.mark.asyncio
async def test_feed_requires_session(feed):
    with pytest.raises(ScopeError):
        await feed.get_cached_feed(USER, TENANT, None)
    with pytest.raises(ScopeError):
        await feed.cache_feed(USER, "", SESSION, [item(1, 1)])


# === Test 11: Corrupt records and store failures ===

@pytest.mark.asyncio
async def test_corrupt_payload_is_a_miss(feed, store):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)], has_more=False)
    scope = ScopeKey("feed", TENANT, str(USER), SESSION)
    await store.set_string(scope, PAYLOAD_FIELD, "{not json")

    assert await feed.get_cached_feed(USER, TENANT, SESSION) is None

    # The next write replaces the corrupt record; the terminal flag survives
    await feed.cache_feed(USER, TENANT, SESSION, [item(2, 200)], next_page="p2", has_more=True)
    cached = await feed.get_cached_feed(USER, TENANT, SESSION)
    assert ids(cached.items) == ["2"]
    assert cached.all_history_loaded is True


@pytest.mark.asyncio
async def test_wrong_codec_version_is_a_miss(feed, store):
    scope = ScopeKey("feed", TENANT, str(USER), SESSION)
    await store.set_fields(scope, {
        PAYLOAD_FIELD: '{"version": 99, "data": {"items": [], "has_more": true}}',
        "cached_at": T0,
    })
    assert await feed.get_cached_feed(USER, TENANT, SESSION) is None


@pytest.mark.asyncio
async def test_store_failures_degrade(clock):
    feed = FeedCacheService(CacheStore(FailingStore()), clock=clock)

    assert await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100)]) is False
    merged = await feed.merge_new_items(USER, TENANT, SESSION, [item(1, 100), item(2, 200)])
    assert ids(merged) == ["2", "1"]
    assert await feed.get_cached_feed(USER, TENANT, SESSION) is None
    assert await feed.should_check_for_new_items(USER, TENANT, SESSION) is True


@pytest.mark.asyncio
async def test_cache_status_reports_diagnostics(feed, clock):
    await feed.cache_feed(USER, TENANT, SESSION, [item(1, 100), item(2, 300)], next_page="p2")
    clock.advance(2 * MINUTE_MS)

    status = await feed.get_cache_status(USER, TENANT, SESSION)
    assert status["cached"] is True
    assert status["state"] == "partial"
    assert status["item_count"] == 2
    assert status["oldest_timestamp"] == 100
    assert status["newest_timestamp"] == 300
    assert status["age"] == "2m ago"
    assert status["is_valid"] is True


# === Test 12: Per-scope locks ===

@pytest.mark.asyncio
async def test_scope_locks_are_not_retained(feed):
    for session in range(5):
        await feed.cache_feed(USER, TENANT, str(session), [item(1, 100)])
        await feed.merge_new_items(USER, TENANT, str(session), [item(2, 200)])
    await feed.clear_cache(USER, TENANT, "0")

    assert len(feed._locks) == 0
