"""SQLite key-value store for the campuscache offline cache.

This module handles database connection, initialization, and schema management,
and exposes the typed get/set/remove operations every domain cache builds on.
"""

import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Iterable, List, Optional, Tuple, Union

import aiosqlite

from utils.errors import StoreError, retry_on_locked
from utils.config import Config

logger = logging.getLogger(__name__)

# Database schema version for migrations
SCHEMA_VERSION = 2

StoreValue = Union[str, int, bool]

# Core SQL schema definition
CORE_SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Scoped key-value entries
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value_type TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

# Migration SQL for version 2 (index for stats and stale-entry scans)
MIGRATION_V2_SQL = """
CREATE INDEX IF NOT EXISTS idx_kv_store_updated ON kv_store(updated_at);
"""

UPSERT_SQL = """
    INSERT INTO kv_store (key, value_type, value, updated_at)
    VALUES (?, ?, ?, datetime('now'))
    ON CONFLICT(key) DO UPDATE SET
        value_type = excluded.value_type,
        value = excluded.value,
        updated_at = excluded.updated_at
"""


def _encode_value(value: StoreValue) -> Tuple[str, str]:
    """Map a Python value to its (value_type, text) storage pair."""
    # bool first: bool is a subclass of int
    if isinstance(value, bool):
        return "bool", "1" if value else "0"
    if isinstance(value, int):
        return "int", str(value)
    if isinstance(value, str):
        return "str", value
    raise TypeError(f"Unsupported store value type: {type(value).__name__}")


class CacheDatabase:
    """SQLite cache database manager.

    Provides an async key-value interface for the cache services and a
    small synchronous surface (stats, vacuum) for maintenance commands.
    """

    def __init__(self, db_path: Optional[Path] = None, max_retries: Optional[int] = None):
        """Initialize cache database.

        Args:
            db_path: Path to SQLite database file. Defaults to the configured cache dir.
            max_retries: Attempts for writes that hit a locked database.
        """
        if db_path is None:
            db_path = Config.db_path()

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_retries = max_retries if max_retries is not None else Config.STORE_RETRIES
        self._initialized = False
        self._init_lock = asyncio.Lock()

        self._write = retry_on_locked(max_attempts=self.max_retries)(self._write_once)

    # Schema management

    def init_schema(self) -> None:
        """Initialize database schema (synchronous)."""
        if self._initialized:
            return

        with self.get_connection() as conn:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
            )
            if cursor.fetchone() is None:
                conn.executescript(CORE_SCHEMA_SQL)
                conn.executescript(MIGRATION_V2_SQL)
                conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (SCHEMA_VERSION,)
                )
                logger.info(f"Initialized cache database at {self.db_path}")
            else:
                cursor = conn.execute("SELECT MAX(version) FROM schema_version")
                current_version = cursor.fetchone()[0] or 0
                if current_version < SCHEMA_VERSION:
                    self._apply_migrations(conn, current_version)

            conn.commit()

        self._initialized = True

    async def init_schema_async(self) -> None:
        """Initialize database schema (asynchronous).

        Safe to call from many tasks at once: the first caller creates the
        schema, later callers return immediately.
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    await db.execute("PRAGMA journal_mode = WAL")
                    cursor = await db.execute(
                        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
                    )
                    if await cursor.fetchone() is None:
                        await db.executescript(CORE_SCHEMA_SQL)
                        await db.executescript(MIGRATION_V2_SQL)
                        await db.execute(
                            "INSERT INTO schema_version (version) VALUES (?)",
                            (SCHEMA_VERSION,)
                        )
                        logger.info(f"Initialized cache database at {self.db_path}")
                    else:
                        cursor = await db.execute("SELECT MAX(version) FROM schema_version")
                        row = await cursor.fetchone()
                        current_version = row[0] if row and row[0] else 0
                        if current_version < SCHEMA_VERSION:
                            await self._apply_migrations_async(db, current_version)

                    await db.commit()
            except (sqlite3.Error, OSError) as e:
                raise StoreError(
                    f"Could not initialize cache database: {e}",
                    original_error=e,
                    context={"db_path": str(self.db_path)},
                ) from e

            self._initialized = True

    # Explicit composition-time entry point
    initialize = init_schema_async

    def _apply_migrations(self, conn: sqlite3.Connection, from_version: int) -> None:
        """Apply database migrations (sync)."""
        logger.info(f"Migrating database from version {from_version} to {SCHEMA_VERSION}")

        if from_version < 2:
            logger.info("Applying migration v2: adding kv_store updated_at index")
            conn.executescript(MIGRATION_V2_SQL)

        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,)
        )

    async def _apply_migrations_async(self, db: aiosqlite.Connection, from_version: int) -> None:
        """Apply database migrations (async)."""
        logger.info(f"Migrating database from version {from_version} to {SCHEMA_VERSION}")

        if from_version < 2:
            logger.info("Applying migration v2: adding kv_store updated_at index")
            await db.executescript(MIGRATION_V2_SQL)

        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,)
        )

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a synchronous database connection.

        Yields:
            SQLite connection with row factory
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")  # Better concurrency
        try:
            yield conn
        finally:
            conn.close()

    # Low-level async helpers

    async def _fetchall(self, sql: str, params: Tuple = ()) -> List[aiosqlite.Row]:
        await self.init_schema_async()
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                return list(await cursor.fetchall())
        except (sqlite3.Error, OSError) as e:
            raise StoreError(
                f"Cache read failed: {e}",
                original_error=e,
                context={"db_path": str(self.db_path)},
            ) from e

    async def _write_once(self, statements: List[Tuple[str, Tuple]]) -> List[int]:
        """Run statements in one transaction and return their row counts."""
        rowcounts = []
        async with aiosqlite.connect(self.db_path) as db:
            for sql, params in statements:
                cursor = await db.execute(sql, params)
                rowcounts.append(cursor.rowcount)
            await db.commit()
        return rowcounts

    async def _execute_write(self, statements: List[Tuple[str, Tuple]]) -> List[int]:
        await self.init_schema_async()
        try:
            return await self._write(statements)
        except (sqlite3.Error, OSError) as e:
            raise StoreError(
                f"Cache write failed: {e}",
                original_error=e,
                context={"db_path": str(self.db_path), "statements": len(statements)},
            ) from e

    async def _get(self, key: str, value_type: str) -> Optional[str]:
        rows = await self._fetchall(
            "SELECT value_type, value FROM kv_store WHERE key = ?",
            (key,)
        )
        if not rows:
            return None
        row = rows[0]
        if row["value_type"] != value_type:
            logger.warning(
                f"Type mismatch for key {key}: stored {row['value_type']}, requested {value_type}"
            )
            return None
        return row["value"]

    # Typed key-value interface

    async def get_string(self, key: str) -> Optional[str]:
        """Get a string value, or None when absent."""
        return await self._get(key, "str")

    async def get_int(self, key: str) -> Optional[int]:
        """Get an integer value, or None when absent."""
        raw = await self._get(key, "int")
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Corrupt integer stored under key {key}: {raw!r}")
            return None

    async def get_bool(self, key: str) -> Optional[bool]:
        """Get a boolean value, or None when absent."""
        raw = await self._get(key, "bool")
        if raw is None:
            return None
        return raw == "1"

    async def set_string(self, key: str, value: str) -> None:
        await self.set_many({key: value})

    async def set_int(self, key: str, value: int) -> None:
        await self.set_many({key: value})

    async def set_bool(self, key: str, value: bool) -> None:
        await self.set_many({key: value})

    async def set_many(self, values: Dict[str, StoreValue]) -> None:
        """Write several keys in a single transaction.

        Args:
            values: Mapping of key to str, int or bool value
        """
        if not values:
            return
        statements = []
        for key, value in values.items():
            value_type, text = _encode_value(value)
            statements.append((UPSERT_SQL, (key, value_type, text)))
        await self._execute_write(statements)

    async def remove(self, key: str) -> None:
        await self.remove_many([key])

    async def remove_many(self, keys: Iterable[str]) -> int:
        """Delete several keys in a single transaction.

        Returns:
            Number of entries removed
        """
        statements = [("DELETE FROM kv_store WHERE key = ?", (key,)) for key in keys]
        if not statements:
            return 0
        rowcounts = await self._execute_write(statements)
        return sum(max(count, 0) for count in rowcounts)

    async def compare_and_set_int(self, key: str, expected: Optional[int], new: int) -> bool:
        """Atomically replace an integer if it still holds the expected value.

        Args:
            key: Storage key
            expected: Value the caller last observed. None means "absent or
                not a readable integer", so a wrong-typed or corrupt row is
                replaced instead of blocking every later swap.
            new: Replacement value

        Returns:
            True if this call performed the swap
        """
        if expected is None:
            statement = (
                """
                INSERT INTO kv_store (key, value_type, value, updated_at)
                VALUES (?, 'int', ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET
                    value_type = excluded.value_type,
                    value = excluded.value,
                    updated_at = excluded.updated_at
                WHERE kv_store.value_type != 'int'
                   OR CAST(CAST(kv_store.value AS INTEGER) AS TEXT) != kv_store.value
                """,
                (key, str(new)),
            )
        else:
            statement = (
                """
                UPDATE kv_store SET value = ?, updated_at = datetime('now')
                WHERE key = ? AND value_type = 'int' AND value = ?
                """,
                (str(new), key, str(expected)),
            )
        rowcounts = await self._execute_write([statement])
        return rowcounts[0] == 1

    async def find_keys(self, contains: str = "") -> List[str]:
        """List stored keys containing a substring (for diagnostics)."""
        rows = await self._fetchall(
            "SELECT key FROM kv_store WHERE instr(key, ?) > 0 ORDER BY key",
            (contains,)
        )
        return [row["key"] for row in rows]

    async def clear_all(self) -> int:
        """Delete every cached entry.

        Returns:
            Number of entries cleared
        """
        rowcounts = await self._execute_write([("DELETE FROM kv_store", ())])
        count = max(rowcounts[0], 0)
        logger.info(f"Cleared {count} cache entries")
        return count

    # Maintenance (synchronous)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with entry counts per domain and file size
        """
        self.init_schema()
        stats: Dict[str, Any] = {}
        with self.get_connection() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM kv_store")
            stats["entries_count"] = cursor.fetchone()[0]

            cursor = conn.execute("""
                SELECT substr(key, 1, instr(key, '|') - 1) AS domain, COUNT(*) AS entries
                FROM kv_store
                WHERE instr(key, '|') > 0
                GROUP BY domain
                ORDER BY domain
            """)
            stats["by_domain"] = {row["domain"]: row["entries"] for row in cursor.fetchall()}

            cursor = conn.execute(
                "SELECT COUNT(*) FROM kv_store WHERE updated_at > datetime('now', '-1 days')"
            )
            stats["updated_last_24h"] = cursor.fetchone()[0]

        stats["db_size_mb"] = round(self.db_path.stat().st_size / (1024 * 1024), 2)
        return stats

    def vacuum(self) -> None:
        """Optimize database by running VACUUM."""
        with self.get_connection() as conn:
            conn.execute("VACUUM")
            logger.info("Database vacuumed successfully")


async def init_cache(db_path: Optional[Path] = None) -> CacheDatabase:
    """Create and initialize a cache database.

    Args:
        db_path: Optional path to database file

    Returns:
        Initialized CacheDatabase instance
    """
    db = CacheDatabase(db_path)
    await db.initialize()
    return db


__all__ = [
    "CacheDatabase",
    "StoreValue",
    "init_cache",
    "SCHEMA_VERSION",
]
