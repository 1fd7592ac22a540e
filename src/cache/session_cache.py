"""Academic session list cache.

The list of sessions a student can switch between does not depend on the
selected session, so the scope has no session component.
"""

import logging
from datetime import timedelta
from typing import Any, List, Optional

from cache.domain_cache import CacheResult, TimedCache
from cache.freshness import Clock
from cache.store import CacheStore
from models.codec import require_list
from models.session import AcademicSession

logger = logging.getLogger(__name__)


def _encode(sessions: List[AcademicSession]) -> list:
    return [session.to_dict() for session in sessions]


def _decode(data: Any) -> List[AcademicSession]:
    return [AcademicSession.from_dict(row) for row in require_list(data, "sessions")]


class SessionCacheService:
    """Cache for the academic session list (24 hour validity)."""

    DOMAIN = "sessions"
    VALIDITY = timedelta(hours=24)
    CODEC_VERSION = 1

    def __init__(self, store: CacheStore, clock: Optional[Clock] = None):
        self._cache: TimedCache[List[AcademicSession]] = TimedCache(
            store,
            self.DOMAIN,
            self.VALIDITY,
            self.CODEC_VERSION,
            encode=_encode,
            decode=_decode,
            session_scoped=False,
            clock=clock,
        )

    async def cache_sessions(
        self,
        user_id: Any,
        tenant_abbr: str,
        sessions: List[AcademicSession],
    ) -> bool:
        return await self._cache.put(self._cache.scope(user_id, tenant_abbr), sessions)

    async def get_cached_sessions(
        self,
        user_id: Any,
        tenant_abbr: str,
    ) -> Optional[CacheResult[List[AcademicSession]]]:
        return await self._cache.get(self._cache.scope(user_id, tenant_abbr))

    async def clear_cache(self, user_id: Any, tenant_abbr: str) -> None:
        await self._cache.clear(self._cache.scope(user_id, tenant_abbr))

    async def get_cache_age_string(self, user_id: Any, tenant_abbr: str) -> str:
        return await self._cache.age_string(self._cache.scope(user_id, tenant_abbr))


__all__ = ["SessionCacheService"]
