"""Subjects cache: registered subjects of the current semester."""

import logging
from datetime import timedelta
from typing import Any, Optional

from cache.domain_cache import CacheResult, TimedCache
from cache.freshness import Clock
from cache.store import CacheStore
from models.subject import SubjectsSnapshot

logger = logging.getLogger(__name__)


class SubjectsCacheService:
    DOMAIN = "subjects"
    VALIDITY = timedelta(hours=24)
    CODEC_VERSION = 1

    def __init__(self, store: CacheStore, clock: Optional[Clock] = None):
        self._cache: TimedCache[SubjectsSnapshot] = TimedCache(
            store,
            self.DOMAIN,
            self.VALIDITY,
            self.CODEC_VERSION,
            encode=SubjectsSnapshot.to_dict,
            decode=SubjectsSnapshot.from_dict,
            session_scoped=True,
            clock=clock,
        )

    async def cache_subjects(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
        snapshot: SubjectsSnapshot,
    ) -> bool:
        scope = self._cache.scope(user_id, tenant_abbr, session_id)
        return await self._cache.put(scope, snapshot)

    async def get_cached_subjects(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
    ) -> Optional[CacheResult[SubjectsSnapshot]]:
        return await self._cache.get(self._cache.scope(user_id, tenant_abbr, session_id))

    async def clear_cache(self, user_id: Any, tenant_abbr: str, session_id: Any) -> None:
        await self._cache.clear(self._cache.scope(user_id, tenant_abbr, session_id))

    async def get_cache_age_string(self, user_id: Any, tenant_abbr: str, session_id: Any) -> str:
        return await self._cache.age_string(self._cache.scope(user_id, tenant_abbr, session_id))


__all__ = ["SubjectsCacheService"]
