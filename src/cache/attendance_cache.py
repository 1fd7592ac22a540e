"""Attendance cache.

Stores the per-subject attendance summary of one student for one academic
session. Attendance changes during the day, so entries go stale after an hour.
"""

import logging
from datetime import timedelta
from typing import Any, List, Optional

from cache.domain_cache import CacheResult, TimedCache
from cache.freshness import Clock
from cache.store import CacheStore
from models.attendance import AttendanceSubject
from models.codec import require_list

logger = logging.getLogger(__name__)


def _encode(subjects: List[AttendanceSubject]) -> list:
    return [subject.to_dict() for subject in subjects]


def _decode(data: Any) -> List[AttendanceSubject]:
    return [AttendanceSubject.from_dict(row) for row in require_list(data, "attendance")]


class AttendanceCacheService:
    """Cache for attendance summaries, scoped by session."""

    DOMAIN = "attendance"
    VALIDITY = timedelta(hours=1)
    CODEC_VERSION = 1

    def __init__(self, store: CacheStore, clock: Optional[Clock] = None):
        self._cache: TimedCache[List[AttendanceSubject]] = TimedCache(
            store,
            self.DOMAIN,
            self.VALIDITY,
            self.CODEC_VERSION,
            encode=_encode,
            decode=_decode,
            session_scoped=True,
            clock=clock,
        )

    async def cache_attendance(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
        subjects: List[AttendanceSubject],
    ) -> bool:
        """Cache the attendance rows for a session.

        Returns:
            True if the write was applied
        """
        scope = self._cache.scope(user_id, tenant_abbr, session_id)
        return await self._cache.put(scope, subjects)

    async def get_cached_attendance(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
    ) -> Optional[CacheResult[List[AttendanceSubject]]]:
        return await self._cache.get(self._cache.scope(user_id, tenant_abbr, session_id))

    async def is_cache_valid(self, user_id: Any, tenant_abbr: str, session_id: Any) -> bool:
        """Whether attendance was cached within the last hour."""
        return await self._cache.is_valid(self._cache.scope(user_id, tenant_abbr, session_id))

    async def clear_cache(self, user_id: Any, tenant_abbr: str, session_id: Any) -> None:
        await self._cache.clear(self._cache.scope(user_id, tenant_abbr, session_id))

    async def get_cache_age_string(self, user_id: Any, tenant_abbr: str, session_id: Any) -> str:
        return await self._cache.age_string(self._cache.scope(user_id, tenant_abbr, session_id))


__all__ = ["AttendanceCacheService"]
