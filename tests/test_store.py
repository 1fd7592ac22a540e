#!/usr/bin/env python
"""Tests for the scoped key-value store.

Covers:
- ScopeKey: storage key layout, validation, collision freedom
- CacheStore over both backends (SQLite and in-memory)
- Typed reads, type mismatches, batch writes and removes
- compare_and_set_int semantics
- CacheDatabase stats and error wrapping

Run with: pytest tests/test_store.py -v
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cache.database import CacheDatabase
from cache.memory_store import MemoryStore
from cache.store import CacheStore, ScopeKey
from utils.errors import CacheError, ScopeError, StoreError


@pytest.fixture(params=["sqlite", "memory"])
def backend(request, tmp_path):
    if request.param == "sqlite":
        return CacheDatabase(tmp_path / "cache.db", max_retries=2)
    return MemoryStore()


@pytest.fixture
def store(backend):
    return CacheStore(backend)


@pytest.fixture
def scope():
    return ScopeKey("attendance", "dps", "1042", "7")


# === Test 1: Storage key layout ===

def test_storage_key_layout():
    """Keys are domain|tenant|user[|session]|field."""
    assert ScopeKey("attendance", "dps", "1042", "7").storage_key("payload") == "attendance|dps|1042|7|payload"
    assert ScopeKey("sessions", "dps", "1042").storage_key("cached_at") == "sessions|dps|1042|cached_at"


# === Test 2: Invalid scope components are rejected ===

@pytest.mark.parametrize("kwargs", [
    {"domain": "", "tenant_abbr": "dps", "user_id": "1"},
    {"domain": "feed", "tenant_abbr": "  ", "user_id": "1"},
    {"domain": "feed", "tenant_abbr": "dps", "user_id": ""},
    {"domain": "feed", "tenant_abbr": "d|ps", "user_id": "1"},
    {"domain": "feed", "tenant_abbr": "dps", "user_id": "1", "session_id": "7|8"},
    {"domain": "feed", "tenant_abbr": "dps", "user_id": "1", "session_id": ""},
])
def test_scope_rejects_bad_components(kwargs):
    with pytest.raises(ScopeError) as exc_info:
        ScopeKey(**kwargs)
    assert isinstance(exc_info.value, ValueError)
    assert exc_info.value.recoverable is False


def test_scope_rejects_bad_field(scope):
    with pytest.raises(ScopeError):
        scope.storage_key("a|b")
    with pytest.raises(ScopeError):
        scope.storage_key("")


# === Test 3: Distinct scopes never share keys ===

def test_distinct_scopes_produce_distinct_keys():
    scopes = [
        ScopeKey("feed", "dps", "1", "7"),
        ScopeKey("feed", "dps", "1"),
        ScopeKey("feed", "dps", "17"),
        ScopeKey("feed", "dps", "1", "8"),
        ScopeKey("feed", "dpsx", "1", "7"),
        ScopeKey("attendance", "dps", "1", "7"),
        ScopeKey("feed", "dps", "7", "1"),
    ]
    keys = {s.storage_key("payload") for s in scopes}
    assert len(keys) == len(scopes)


# === Test 4: Typed round trips and missing keys ===

@pytest.mark.asyncio
async def test_missing_keys_read_as_none(store, scope):
    assert await store.get_string(scope, "payload") is None
    assert await store.get_int(scope, "cached_at") is None
    assert await store.get_bool(scope, "flag") is None


@pytest.mark.asyncio
async def test_typed_values(store, scope):
    await store.set_string(scope, "payload", '{"a": "ü"}')
    await store.set_int(scope, "cached_at", 1_700_000_000_000)
    await store.set_bool(scope, "flag", False)

    assert await store.get_string(scope, "payload") == '{"a": "ü"}'
    assert await store.get_int(scope, "cached_at") == 1_700_000_000_000
    assert await store.get_bool(scope, "flag") is False


@pytest.mark.asyncio
async def test_type_mismatch_reads_as_none(store, scope):
    await store.set_bool(scope, "flag", True)
    await store.set_string(scope, "text", "12")

    assert await store.get_int(scope, "flag") is None
    assert await store.get_int(scope, "text") is None
    assert await store.get_bool(scope, "flag") is True


# === Test 5: Batch writes and removes ===

@pytest.mark.asyncio
async def test_set_fields_and_remove_fields(store, scope):
    await store.set_fields(scope, {"payload": "x", "cached_at": 5, "done": True})

    assert await store.get_string(scope, "payload") == "x"
    assert await store.get_int(scope, "cached_at") == 5
    assert await store.get_bool(scope, "done") is True

    removed = await store.remove_fields(scope, ["payload", "cached_at", "never_written"])
    assert removed == 2
    assert await store.get_string(scope, "payload") is None
    assert await store.get_bool(scope, "done") is True

    await store.remove(scope, "done")
    assert await store.get_bool(scope, "done") is None


# === Test 6: Scope isolation ===

@pytest.mark.asyncio
async def test_scope_isolation(store):
    a = ScopeKey("feed", "dps", "1", "7")
    b = ScopeKey("feed", "dps", "1", "8")
    c = ScopeKey("feed", "dps", "2", "7")

    await store.set_string(a, "payload", "A")
    assert await store.get_string(b, "payload") is None
    assert await store.get_string(c, "payload") is None

    await store.set_string(b, "payload", "B")
    await store.remove(c, "payload")
    assert await store.get_string(a, "payload") == "A"
    assert await store.get_string(b, "payload") == "B"


# === Test 7: compare_and_set_int ===

@pytest.mark.asyncio
async def test_compare_and_set_from_absent(store, scope):
    assert await store.compare_and_set_int(scope, "last_check", None, 100) is True
    # A second "absent" expectation loses
    assert await store.compare_and_set_int(scope, "last_check", None, 200) is False
    assert await store.get_int(scope, "last_check") == 100


@pytest.mark.asyncio
async def test_compare_and_set_expected_value(store, scope):
    await store.set_int(scope, "last_check", 100)

    assert await store.compare_and_set_int(scope, "last_check", 50, 300) is False
    assert await store.compare_and_set_int(scope, "last_check", 100, 300) is True
    assert await store.compare_and_set_int(scope, "last_check", 100, 400) is False
    assert await store.get_int(scope, "last_check") == 300


@pytest.mark.asyncio
async def test_compare_and_set_replaces_unreadable_row(store, scope):
    await store.set_string(scope, "last_check", "garbage")

    assert await store.compare_and_set_int(scope, "last_check", None, 100) is True
    assert await store.get_int(scope, "last_check") == 100
    assert await store.compare_and_set_int(scope, "last_check", None, 200) is False


@pytest.mark.asyncio
async def test_compare_and_set_replaces_corrupt_sqlite_integer(tmp_path, scope):
    db = CacheDatabase(tmp_path / "cache.db")
    await db.initialize()
    key = scope.storage_key("last_check")
    with db.get_connection() as conn:
        conn.execute(
            "INSERT INTO kv_store (key, value_type, value) VALUES (?, 'int', 'abc')",
            (key,)
        )
        conn.commit()

    assert await db.get_int(key) is None
    assert await db.compare_and_set_int(key, None, 100) is True
    assert await db.get_int(key) == 100


# === Test 8: SQLite stats and persistence ===

@pytest.mark.asyncio
async def test_sqlite_persists_across_instances(tmp_path, scope):
    path = tmp_path / "cache.db"
    await CacheStore(CacheDatabase(path)).set_string(scope, "payload", "kept")

    reopened = CacheStore(CacheDatabase(path))
    assert await reopened.get_string(scope, "payload") == "kept"


@pytest.mark.asyncio
async def test_sqlite_stats_by_domain(tmp_path):
    db = CacheDatabase(tmp_path / "cache.db")
    store = CacheStore(db)
    await store.set_fields(ScopeKey("attendance", "dps", "1", "7"), {"payload": "x", "cached_at": 1})
    await store.set_int(ScopeKey("sessions", "dps", "1"), "cached_at", 1)

    stats = db.get_stats()
    assert stats["entries_count"] == 3
    assert stats["by_domain"] == {"attendance": 2, "sessions": 1}
    assert stats["updated_last_24h"] == 3

    keys = await db.find_keys("|dps|1|")
    assert "sessions|dps|1|cached_at" in keys
    assert await db.clear_all() == 3
    assert await db.find_keys() == []


# === Test 9: I/O failures surface as StoreError ===

@pytest.mark.asyncio
async def test_unopenable_database_raises_store_error(tmp_path):
    # A directory cannot be opened as a database file
    bad_path = tmp_path / "as_dir.db"
    bad_path.mkdir()
    db = CacheDatabase(bad_path)

    with pytest.raises(StoreError) as exc_info:
        await db.get_string("feed|dps|1|7|payload")
    assert exc_info.value.recoverable is True
    assert isinstance(exc_info.value, CacheError)
    assert exc_info.value.to_dict()["type"] == "store_io"


@pytest.mark.asyncio
async def test_initialize_is_idempotent(tmp_path):
    db = CacheDatabase(tmp_path / "cache.db")
    await db.initialize()
    await db.initialize()
    db.init_schema()
    with db.get_connection() as conn:
        versions = [row[0] for row in conn.execute("SELECT version FROM schema_version")]
    assert versions == [2]


def test_memory_store_rejects_unsupported_values():
    import asyncio

    store = MemoryStore()
    with pytest.raises(TypeError):
        asyncio.run(store.set_many({"k": 1.5}))
