"""Fee receipts cache.

Receipts span all sessions of a student, so the scope has no session
component.
"""

import logging
from datetime import timedelta
from typing import Any, Optional

from cache.domain_cache import CacheResult, TimedCache
from cache.freshness import Clock
from cache.store import CacheStore
from models.fee_receipt import FeeReceipts

logger = logging.getLogger(__name__)


class FeeReceiptsCacheService:
    DOMAIN = "fee_receipts"
    VALIDITY = timedelta(hours=24)
    CODEC_VERSION = 1

    def __init__(self, store: CacheStore, clock: Optional[Clock] = None):
        self._cache: TimedCache[FeeReceipts] = TimedCache(
            store,
            self.DOMAIN,
            self.VALIDITY,
            self.CODEC_VERSION,
            encode=FeeReceipts.to_dict,
            decode=FeeReceipts.from_dict,
            session_scoped=False,
            clock=clock,
        )

    async def cache_fee_receipts(self, user_id: Any, tenant_abbr: str, receipts: FeeReceipts) -> bool:
        """Cache the receipt list and total paid.

        Returns:
            True if the write was applied
        """
        return await self._cache.put(self._cache.scope(user_id, tenant_abbr), receipts)

    async def get_cached_fee_receipts(
        self,
        user_id: Any,
        tenant_abbr: str,
    ) -> Optional[CacheResult[FeeReceipts]]:
        return await self._cache.get(self._cache.scope(user_id, tenant_abbr))

    async def is_cache_valid(self, user_id: Any, tenant_abbr: str) -> bool:
        return await self._cache.is_valid(self._cache.scope(user_id, tenant_abbr))

    async def clear_cache(self, user_id: Any, tenant_abbr: str) -> None:
        await self._cache.clear(self._cache.scope(user_id, tenant_abbr))

    async def get_cache_age_string(self, user_id: Any, tenant_abbr: str) -> str:
        return await self._cache.age_string(self._cache.scope(user_id, tenant_abbr))


__all__ = ["FeeReceiptsCacheService"]
