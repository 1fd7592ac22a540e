"""Cache service container - constructed once at app startup.

Owns the shared key-value store and injects it into every domain cache
service. Nothing here is a global: the application keeps the instance it
builds, and tests build their own.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from cache.attendance_cache import AttendanceCacheService
from cache.database import CacheDatabase
from cache.fee_receipts_cache import FeeReceiptsCacheService
from cache.feed_cache import FeedCacheService
from cache.freshness import Clock
from cache.invalidation import BuildVersionTracker
from cache.memory_store import MemoryStore
from cache.profile_cache import ProfileCacheService
from cache.report_card_cache import ReportCardCacheService
from cache.session_cache import SessionCacheService
from cache.store import CacheStore, KeyValueStore
from cache.subjects_cache import SubjectsCacheService
from cache.timetable_cache import TimetableCacheService
from utils.config import Config

logger = logging.getLogger(__name__)


def create_backend(backend: Optional[str] = None, db_path: Optional[Path] = None) -> KeyValueStore:
    """Build the configured key-value backend.

    Args:
        backend: "sqlite" or "memory" (defaults to Config.BACKEND)
        db_path: SQLite file, defaults to the configured cache dir

    Raises:
        ValueError: For an unknown backend name
    """
    backend = (backend or Config.BACKEND).lower()
    if backend == "sqlite":
        return CacheDatabase(db_path)
    if backend == "memory":
        return MemoryStore()
    raise ValueError(f"Unknown cache backend: {backend!r} (expected 'sqlite' or 'memory')")


class CacheServices:
    """Holds the shared store and all domain cache services."""

    def __init__(self, backend: KeyValueStore, clock: Optional[Clock] = None):
        """Wire every service to one store.

        Args:
            backend: Shared key-value store handle
            clock: Millisecond clock passed to every service (tests)
        """
        self.backend = backend
        self.store = CacheStore(backend)

        self.feed = FeedCacheService(self.store, clock=clock)
        self.attendance = AttendanceCacheService(self.store, clock=clock)
        self.timetable = TimetableCacheService(self.store, clock=clock)
        self.subjects = SubjectsCacheService(self.store, clock=clock)
        self.sessions = SessionCacheService(self.store, clock=clock)
        self.profile = ProfileCacheService(self.store, clock=clock)
        self.report_card = ReportCardCacheService(self.store, clock=clock)
        self.fee_receipts = FeeReceiptsCacheService(self.store, clock=clock)

        self.build_tracker = BuildVersionTracker(self.store)

    @classmethod
    def from_config(
        cls,
        backend: Optional[str] = None,
        db_path: Optional[Path] = None,
        clock: Optional[Clock] = None,
    ) -> "CacheServices":
        return cls(create_backend(backend, db_path), clock=clock)

    async def initialize(self) -> None:
        """Create the schema. Call once at app startup."""
        await self.store.initialize()
        logger.info(f"Cache services ready ({type(self.backend).__name__})")

    async def invalidate_all(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Optional[Any] = None,
    ) -> None:
        """Clear every domain cache of a user.

        Session-scoped caches are cleared only when session_id is given.
        """
        await self.sessions.clear_cache(user_id, tenant_abbr)
        await self.profile.clear_all_cache(user_id, tenant_abbr)
        await self.fee_receipts.clear_cache(user_id, tenant_abbr)

        if session_id is not None:
            await self.feed.clear_cache(user_id, tenant_abbr, session_id)
            await self.attendance.clear_cache(user_id, tenant_abbr, session_id)
            await self.timetable.clear_cache(user_id, tenant_abbr, session_id)
            await self.subjects.clear_cache(user_id, tenant_abbr, session_id)
            await self.report_card.clear_cache(user_id, tenant_abbr, session_id)

        logger.info(
            f"Invalidated caches for user {user_id} ({tenant_abbr}, session={session_id})"
        )

    async def refresh_on_build_change(
        self,
        current_build: int,
        user_id: Any,
        tenant_abbr: str,
        session_id: Optional[Any] = None,
    ) -> bool:
        """Wipe the user's caches if the app build changed since last launch.

        Returns:
            True if caches were invalidated
        """
        if not await self.build_tracker.has_build_changed(current_build):
            return False
        await self.invalidate_all(user_id, tenant_abbr, session_id)
        return True


__all__ = ["CacheServices", "create_backend"]
