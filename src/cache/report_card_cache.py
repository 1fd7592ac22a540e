"""Report card cache: semester results with subject grades."""

import logging
from datetime import timedelta
from typing import Any, List, Optional

from cache.domain_cache import CacheResult, TimedCache
from cache.freshness import Clock
from cache.store import CacheStore
from models.codec import require_list
from models.report_card import SemesterResult

logger = logging.getLogger(__name__)


def _encode(results: List[SemesterResult]) -> list:
    return [result.to_dict() for result in results]


def _decode(data: Any) -> List[SemesterResult]:
    return [SemesterResult.from_dict(row) for row in require_list(data, "report card")]


class ReportCardCacheService:
    """Cache for report card results, scoped by session (24 hour validity)."""

    DOMAIN = "report_card"
    VALIDITY = timedelta(hours=24)
    CODEC_VERSION = 1

    def __init__(self, store: CacheStore, clock: Optional[Clock] = None):
        self._cache: TimedCache[List[SemesterResult]] = TimedCache(
            store,
            self.DOMAIN,
            self.VALIDITY,
            self.CODEC_VERSION,
            encode=_encode,
            decode=_decode,
            session_scoped=True,
            clock=clock,
        )

    async def cache_report_card(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
        results: List[SemesterResult],
    ) -> bool:
        scope = self._cache.scope(user_id, tenant_abbr, session_id)
        return await self._cache.put(scope, results)

    async def get_cached_report_card(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
    ) -> Optional[CacheResult[List[SemesterResult]]]:
        return await self._cache.get(self._cache.scope(user_id, tenant_abbr, session_id))

    async def is_cache_valid(self, user_id: Any, tenant_abbr: str, session_id: Any) -> bool:
        return await self._cache.is_valid(self._cache.scope(user_id, tenant_abbr, session_id))

    async def clear_cache(self, user_id: Any, tenant_abbr: str, session_id: Any) -> None:
        await self._cache.clear(self._cache.scope(user_id, tenant_abbr, session_id))

    async def get_cache_age_string(self, user_id: Any, tenant_abbr: str, session_id: Any) -> str:
        return await self._cache.age_string(self._cache.scope(user_id, tenant_abbr, session_id))


__all__ = ["ReportCardCacheService"]
