"""Build-change detection for cache invalidation.

When the app is updated, payload shapes may have changed, so every cache
of the signed-in user is wiped on the first launch of a new build.
"""

import logging
from typing import Optional

from cache.store import CacheStore, ScopeKey
from utils.errors import StoreError

logger = logging.getLogger(__name__)

# Device-wide record, not tied to any tenant or user
BUILD_SCOPE = ScopeKey(domain="app", tenant_abbr="device", user_id="local")
BUILD_FIELD = "last_build"


class BuildVersionTracker:
    """Remembers the last running build number."""

    def __init__(self, store: CacheStore, scope: Optional[ScopeKey] = None):
        self.store = store
        self.scope = scope or BUILD_SCOPE

    async def get_last_build(self) -> Optional[int]:
        try:
            return await self.store.get_int(self.scope, BUILD_FIELD)
        except StoreError as e:
            logger.warning(f"Failed to read last build number: {e}")
            return None

    async def has_build_changed(self, current_build: int) -> bool:
        """Record the running build and report whether it differs from the last one.

        Args:
            current_build: Build number of the running app

        Returns:
            False on first launch, when unchanged, or when the store fails;
            True when a different build was recorded previously
        """
        try:
            last_build = await self.store.get_int(self.scope, BUILD_FIELD)
            if last_build != current_build:
                await self.store.set_int(self.scope, BUILD_FIELD, current_build)
        except StoreError as e:
            logger.warning(f"Failed to check build number: {e}")
            return False

        if last_build is None:
            logger.info(f"First launch recorded for build {current_build}")
            return False
        if last_build != current_build:
            logger.info(f"Build changed from {last_build} to {current_build}")
            return True
        return False


__all__ = ["BuildVersionTracker", "BUILD_SCOPE", "BUILD_FIELD"]
