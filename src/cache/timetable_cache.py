"""Timetable cache.

The weekly grid and the subject-code -> name lookup are stored under
separate fields of the same scope. Writing a timetable without subject
names keeps the names already cached, since the portal only sends the
lookup with some timetable responses.
"""

import json
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from cache.domain_cache import CacheResult, TimedCache
from cache.freshness import Clock
from cache.store import CacheStore
from utils.errors import CacheDecodeError
from models.timetable import (
    Periods,
    Timetable,
    days_from_dict,
    days_to_dict,
    subject_names_from_dict,
)

logger = logging.getLogger(__name__)

SUBJECT_NAMES_FIELD = "subject_names"


class TimetableCacheService:
    """Cache for the session timetable (12 hour validity)."""

    DOMAIN = "timetable"
    VALIDITY = timedelta(hours=12)
    CODEC_VERSION = 1

    def __init__(self, store: CacheStore, clock: Optional[Clock] = None):
        self._cache: TimedCache[Dict[str, Periods]] = TimedCache(
            store,
            self.DOMAIN,
            self.VALIDITY,
            self.CODEC_VERSION,
            encode=days_to_dict,
            decode=days_from_dict,
            session_scoped=True,
            clock=clock,
        )

    async def cache_timetable(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
        days: Dict[str, Periods],
        subject_names: Optional[Dict[str, str]] = None,
    ) -> bool:
        """Cache the timetable grid and, when given, the subject names.

        Args:
            user_id: Portal user id
            tenant_abbr: Tenant abbreviation
            session_id: Academic session id
            days: Day name -> ordered periods
            subject_names: Subject code -> name; None keeps the cached names

        Returns:
            True if the write was applied
        """
        scope = self._cache.scope(user_id, tenant_abbr, session_id)
        extra = None
        if subject_names is not None:
            extra = {SUBJECT_NAMES_FIELD: json.dumps(dict(subject_names), ensure_ascii=False)}
        return await self._cache.put(scope, days, extra_fields=extra)

    async def get_cached_timetable(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
    ) -> Optional[CacheResult[Timetable]]:
        """Get the cached timetable with its subject names.

        Unreadable subject names degrade to an empty lookup; the grid
        itself is still returned.
        """
        scope = self._cache.scope(user_id, tenant_abbr, session_id)
        result = await self._cache.get(scope)
        if result is None:
            return None

        names: Dict[str, str] = {}
        raw = await self._cache.get_field(scope, SUBJECT_NAMES_FIELD)
        if raw is not None:
            try:
                names = subject_names_from_dict(json.loads(raw))
            except (ValueError, CacheDecodeError) as e:
                logger.warning(f"Ignoring corrupt subject names for {scope.describe()}: {e}")

        return CacheResult(
            payload=Timetable(days=result.payload, subject_names=names),
            cached_at_ms=result.cached_at_ms,
            is_valid=result.is_valid,
        )

    async def clear_cache(self, user_id: Any, tenant_abbr: str, session_id: Any) -> None:
        scope = self._cache.scope(user_id, tenant_abbr, session_id)
        await self._cache.clear(scope, extra_fields=[SUBJECT_NAMES_FIELD])

    async def get_cache_age_string(self, user_id: Any, tenant_abbr: str, session_id: Any) -> str:
        return await self._cache.age_string(self._cache.scope(user_id, tenant_abbr, session_id))


__all__ = ["TimetableCacheService", "SUBJECT_NAMES_FIELD"]
