"""Profile cache.

Two records per (tenant, user):
- basic profile (name, photo, class details, menu), refreshed every 6 hours
- personal info (guardian and address details), which never expires once
  written and is only replaced by a new write or a clear
"""

import logging
from datetime import timedelta
from typing import Any, Optional

from cache.domain_cache import CacheResult, TimedCache
from cache.freshness import NEVER_EXPIRES, Clock
from cache.store import CacheStore
from models.profile import BasicProfile, PersonalInfo

logger = logging.getLogger(__name__)


class ProfileCacheService:
    """Cache for the basic profile and personal info records."""

    BASIC_DOMAIN = "profile_basic"
    PERSONAL_DOMAIN = "profile_personal"
    BASIC_VALIDITY = timedelta(hours=6)
    PERSONAL_VALIDITY = NEVER_EXPIRES
    CODEC_VERSION = 1

    def __init__(self, store: CacheStore, clock: Optional[Clock] = None):
        self._basic: TimedCache[BasicProfile] = TimedCache(
            store,
            self.BASIC_DOMAIN,
            self.BASIC_VALIDITY,
            self.CODEC_VERSION,
            encode=BasicProfile.to_dict,
            decode=BasicProfile.from_dict,
            session_scoped=False,
            clock=clock,
        )
        self._personal: TimedCache[PersonalInfo] = TimedCache(
            store,
            self.PERSONAL_DOMAIN,
            self.PERSONAL_VALIDITY,
            self.CODEC_VERSION,
            encode=PersonalInfo.to_dict,
            decode=PersonalInfo.from_dict,
            session_scoped=False,
            clock=clock,
        )

    # Basic profile

    async def cache_basic_profile(self, user_id: Any, tenant_abbr: str, profile: BasicProfile) -> bool:
        return await self._basic.put(self._basic.scope(user_id, tenant_abbr), profile)

    async def get_cached_basic_profile(
        self,
        user_id: Any,
        tenant_abbr: str,
    ) -> Optional[CacheResult[BasicProfile]]:
        return await self._basic.get(self._basic.scope(user_id, tenant_abbr))

    async def clear_cache(self, user_id: Any, tenant_abbr: str) -> None:
        """Clear the basic profile only; see clear_all_cache for both records."""
        await self._basic.clear(self._basic.scope(user_id, tenant_abbr))

    async def get_cache_age_string(self, user_id: Any, tenant_abbr: str) -> str:
        return await self._basic.age_string(self._basic.scope(user_id, tenant_abbr))

    # Personal info

    async def cache_personal_info(self, user_id: Any, tenant_abbr: str, info: PersonalInfo) -> bool:
        return await self._personal.put(self._personal.scope(user_id, tenant_abbr), info)

    async def get_cached_personal_info(
        self,
        user_id: Any,
        tenant_abbr: str,
    ) -> Optional[CacheResult[PersonalInfo]]:
        return await self._personal.get(self._personal.scope(user_id, tenant_abbr))

    async def clear_personal_info_cache(self, user_id: Any, tenant_abbr: str) -> None:
        await self._personal.clear(self._personal.scope(user_id, tenant_abbr))

    async def get_personal_info_age_string(self, user_id: Any, tenant_abbr: str) -> str:
        return await self._personal.age_string(self._personal.scope(user_id, tenant_abbr))

    async def clear_all_cache(self, user_id: Any, tenant_abbr: str) -> None:
        """Clear both profile records of a user."""
        await self.clear_cache(user_id, tenant_abbr)
        await self.clear_personal_info_cache(user_id, tenant_abbr)
        logger.info(f"Cleared profile cache for user {user_id} ({tenant_abbr})")


__all__ = ["ProfileCacheService"]
