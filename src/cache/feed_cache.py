"""Paginated feed cache.

Caches a newest-first announcement feed per (tenant, user, session) scope.
Besides the usual payload and write time, a scope stores:
- bounds: oldest/newest item timestamps seen since the last clear
- all_history_loaded: set once the portal reported no older pages
- last_check: when a head-of-feed refresh was last granted

Read-modify-write operations (merge, append) are serialised per scope with
an asyncio.Lock so that a background refresh racing a pull-to-refresh in
the same process cannot lose items.
"""

import asyncio
import json
import logging
import weakref
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from cache.domain_cache import CACHED_AT_FIELD, PAYLOAD_FIELD, build_scope
from cache.freshness import Clock, TimedCacheEntry, now_millis
from cache.store import CacheStore, ScopeKey
from utils.config import Config
from utils.errors import CacheDecodeError, StoreError
from models.codec import decode_envelope, encode_envelope
from models.feed import (
    CachedFeed,
    FeedItem,
    FeedItemSchema,
    FeedPage,
    FeedState,
    TimestampBounds,
)

logger = logging.getLogger(__name__)

BOUNDS_FIELD = "bounds"
ALL_HISTORY_FIELD = "all_history_loaded"
LAST_CHECK_FIELD = "last_check"


@dataclass
class _StoredFeed:
    page: FeedPage
    cached_at_ms: int
    bounds: TimestampBounds
    all_history_loaded: bool


class FeedCacheService:
    """Feed cache with merge/append pagination and refresh throttling."""

    DOMAIN = "feed"
    VALIDITY = timedelta(minutes=5)
    CODEC_VERSION = 1

    def __init__(
        self,
        store: CacheStore,
        clock: Optional[Clock] = None,
        schema: Optional[FeedItemSchema] = None,
        check_interval: Optional[timedelta] = None,
    ):
        """Initialize the feed cache.

        Args:
            store: Shared scoped store
            clock: Millisecond clock, injectable for tests
            schema: Names of the item id and timestamp attributes
            check_interval: Minimum gap between granted new-item checks
        """
        self.store = store
        self.clock = clock or now_millis
        self.schema = schema or FeedItemSchema()
        if check_interval is None:
            check_interval = timedelta(minutes=Config.FEED_CHECK_MINUTES)
        self.check_interval_ms = int(check_interval.total_seconds() * 1000)
        # A scope's lock lives only while some operation holds or awaits it
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _scope(self, user_id: Any, tenant_abbr: str, session_id: Any) -> ScopeKey:
        return build_scope(self.DOMAIN, user_id, tenant_abbr, session_id, session_scoped=True)

    def _lock(self, scope: ScopeKey) -> asyncio.Lock:
        lock = self._locks.get(scope.prefix)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[scope.prefix] = lock
        return lock

    # Storage helpers

    async def _load(self, scope: ScopeKey) -> Optional[_StoredFeed]:
        """Read the stored feed; undecodable records read as None.

        Raises:
            StoreError: If the store cannot be read
        """
        cached_at = await self.store.get_int(scope, CACHED_AT_FIELD)
        if cached_at is None:
            return None
        text = await self.store.get_string(scope, PAYLOAD_FIELD)
        if text is None:
            return None
        try:
            page = FeedPage.from_dict(decode_envelope(text, self.CODEC_VERSION, "feed"))
        except CacheDecodeError as e:
            logger.warning(f"Discarding undecodable feed {scope.describe()}: {e}")
            return None

        all_loaded = await self.store.get_bool(scope, ALL_HISTORY_FIELD)
        return _StoredFeed(
            page=page,
            cached_at_ms=cached_at,
            bounds=await self._load_bounds(scope),
            all_history_loaded=bool(all_loaded),
        )

    async def _load_bounds(self, scope: ScopeKey) -> TimestampBounds:
        raw = await self.store.get_string(scope, BOUNDS_FIELD)
        if raw is None:
            return TimestampBounds()
        try:
            return TimestampBounds.from_dict(json.loads(raw))
        except (ValueError, CacheDecodeError) as e:
            logger.warning(f"Resetting corrupt feed bounds for {scope.describe()}: {e}")
            return TimestampBounds()

    async def _write(
        self,
        scope: ScopeKey,
        items: List[FeedItem],
        next_page: Any,
        has_more: bool,
        previous: Optional[_StoredFeed],
        overwrite: bool = False,
    ) -> List[FeedItem]:
        """Normalise and persist one feed snapshot in a single transaction.

        Bounds widen across merges and appends. An overwrite recomputes them
        from the written items alone.

        Returns:
            The items as stored (deduplicated, newest first)

        Raises:
            StoreError: If the write fails
        """
        items = self.schema.normalize(items)
        if previous is not None:
            bounds, was_complete = previous.bounds, previous.all_history_loaded
        else:
            # Bounds and the terminal flag survive a miss caused by an undecodable payload
            bounds = await self._load_bounds(scope)
            was_complete = bool(await self.store.get_bool(scope, ALL_HISTORY_FIELD))
        all_loaded = was_complete or not has_more
        if all_loaded:
            next_page, has_more = None, False
        if overwrite:
            bounds = TimestampBounds()
        bounds = bounds.widened([self.schema.timestamp(item) for item in items])

        page = FeedPage(items=items, next_page=next_page, has_more=has_more)
        await self.store.set_fields(scope, {
            PAYLOAD_FIELD: encode_envelope(self.CODEC_VERSION, page.to_dict()),
            CACHED_AT_FIELD: self.clock(),
            BOUNDS_FIELD: json.dumps(bounds.to_dict()),
            ALL_HISTORY_FIELD: all_loaded,
        })
        logger.debug(
            f"Cached {len(items)} feed items for {scope.describe()} "
            f"(has_more={has_more}, all_history_loaded={all_loaded})"
        )
        return items

    def _unseen(self, items: List[FeedItem], existing: List[FeedItem]) -> List[FeedItem]:
        """Items whose key is in neither existing nor earlier in items."""
        seen = {self.schema.key(item) for item in existing}
        unseen = []
        for item in items:
            key = self.schema.key(item)
            if key not in seen:
                seen.add(key)
                unseen.append(item)
        return unseen

    # Public API

    async def cache_feed(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
        items: List[FeedItem],
        next_page: Any = None,
        has_more: bool = True,
    ) -> bool:
        """Overwrite the cached items and pagination cursor.

        Args:
            user_id: Portal user id
            tenant_abbr: Tenant abbreviation
            session_id: Academic session id
            items: Feed items, any order
            next_page: Cursor for the next older page
            has_more: False once the portal has no older pages

        Returns:
            True if the feed was written
        """
        scope = self._scope(user_id, tenant_abbr, session_id)
        async with self._lock(scope):
            try:
                previous = await self._load(scope)
                await self._write(scope, items, next_page, has_more, previous, overwrite=True)
            except StoreError as e:
                logger.warning(f"Failed to cache feed {scope.describe()}: {e}")
                return False
        return True

    async def merge_new_items(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
        new_items: List[FeedItem],
        next_page: Any = None,
        has_more: bool = True,
    ) -> List[FeedItem]:
        """Merge newly published items in front of the cached feed.

        Items already cached (same id and timestamp) are dropped. A None
        next_page keeps the stored cursor unless has_more is False.

        Returns:
            The full merged feed, newest first
        """
        scope = self._scope(user_id, tenant_abbr, session_id)
        async with self._lock(scope):
            try:
                stored = await self._load(scope)
                if stored is None:
                    if not new_items:
                        return []
                    return await self._write(scope, new_items, next_page, has_more, None)

                fresh = self._unseen(new_items, stored.page.items)
                if not fresh:
                    logger.debug(f"No new feed items for {scope.describe()}")
                    return list(stored.page.items)

                if next_page is None and has_more:
                    next_page = stored.page.next_page
                merged = fresh + stored.page.items
                logger.info(f"Merging {len(fresh)} new feed items into {scope.describe()}")
                return await self._write(scope, merged, next_page, has_more, stored)
            except StoreError as e:
                logger.warning(f"Failed to merge feed items into {scope.describe()}: {e}")
                return self.schema.normalize(new_items)

    async def append_to_cache(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
        new_items: List[FeedItem],
        next_page: Any = None,
        has_more: bool = True,
    ) -> List[FeedItem]:
        """Append an older page behind the cached feed.

        Nothing is written when every item is already cached, so a no-op
        fetch does not refresh the cache time.

        Returns:
            The full cached feed after the append, newest first
        """
        scope = self._scope(user_id, tenant_abbr, session_id)
        async with self._lock(scope):
            try:
                stored = await self._load(scope)
                existing = stored.page.items if stored is not None else []
                fresh = self._unseen(new_items, existing)
                if not fresh:
                    logger.debug(f"Older page added nothing to {scope.describe()}")
                    return list(existing)
                return await self._write(scope, existing + fresh, next_page, has_more, stored)
            except StoreError as e:
                logger.warning(f"Failed to append feed items to {scope.describe()}: {e}")
                return self.schema.normalize(new_items)

    async def get_cached_feed(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
    ) -> Optional[CachedFeed]:
        """Get the cached feed, or None when nothing usable is cached."""
        scope = self._scope(user_id, tenant_abbr, session_id)
        try:
            stored = await self._load(scope)
        except StoreError as e:
            logger.warning(f"Failed to read feed {scope.describe()}: {e}")
            return None
        if stored is None:
            logger.debug(f"Cache miss: {scope.describe()}")
            return None

        complete = stored.all_history_loaded
        entry = TimedCacheEntry(stored.cached_at_ms, self.VALIDITY)
        return CachedFeed(
            items=list(stored.page.items),
            cached_at_ms=stored.cached_at_ms,
            next_page=None if complete else stored.page.next_page,
            has_more=False if complete else stored.page.has_more,
            all_history_loaded=complete,
            oldest_timestamp=stored.bounds.oldest,
            newest_timestamp=stored.bounds.newest,
            is_valid=entry.is_fresh(self.clock()),
        )

    async def should_check_for_new_items(
        self,
        user_id: Any,
        tenant_abbr: str,
        session_id: Any,
    ) -> bool:
        """Grant at most one head-of-feed refresh per check interval.

        The last-check time is advanced with a compare-and-set, so of
        several concurrent callers only one is granted the check.
        Store failures grant the check.
        """
        scope = self._scope(user_id, tenant_abbr, session_id)
        now = self.clock()
        try:
            last_check = await self.store.get_int(scope, LAST_CHECK_FIELD)
            if last_check is not None and now - last_check < self.check_interval_ms:
                return False
            granted = await self.store.compare_and_set_int(scope, LAST_CHECK_FIELD, last_check, now)
        except StoreError as e:
            logger.warning(f"Failed to read feed check time for {scope.describe()}: {e}")
            return True
        if granted:
            logger.debug(f"Granted new-item check for {scope.describe()}")
        return granted

    async def get_feed_state(self, user_id: Any, tenant_abbr: str, session_id: Any) -> FeedState:
        feed = await self.get_cached_feed(user_id, tenant_abbr, session_id)
        if feed is None:
            return FeedState.EMPTY
        return feed.state

    async def get_cache_status(self, user_id: Any, tenant_abbr: str, session_id: Any) -> Dict[str, Any]:
        """Diagnostic summary of one feed scope."""
        feed = await self.get_cached_feed(user_id, tenant_abbr, session_id)
        if feed is None:
            return {"cached": False, "state": FeedState.EMPTY.value}
        return {
            "cached": True,
            "state": feed.state.value,
            "item_count": len(feed.items),
            "oldest_timestamp": feed.oldest_timestamp,
            "newest_timestamp": feed.newest_timestamp,
            "cached_at_ms": feed.cached_at_ms,
            "age": TimedCacheEntry(feed.cached_at_ms, self.VALIDITY).age_string(self.clock()),
            "is_valid": feed.is_valid,
            "has_more": feed.has_more,
            "all_history_loaded": feed.all_history_loaded,
        }

    async def clear_cache(self, user_id: Any, tenant_abbr: str, session_id: Any) -> None:
        """Remove every field of the scope, returning it to the empty state."""
        scope = self._scope(user_id, tenant_abbr, session_id)
        fields = [PAYLOAD_FIELD, CACHED_AT_FIELD, BOUNDS_FIELD, ALL_HISTORY_FIELD, LAST_CHECK_FIELD]
        async with self._lock(scope):
            try:
                await self.store.remove_fields(scope, fields)
            except StoreError as e:
                logger.warning(f"Failed to clear feed {scope.describe()}: {e}")
                return
        logger.debug(f"Cleared {scope.describe()}")

    async def get_cache_age_string(self, user_id: Any, tenant_abbr: str, session_id: Any) -> str:
        scope = self._scope(user_id, tenant_abbr, session_id)
        try:
            cached_at = await self.store.get_int(scope, CACHED_AT_FIELD)
        except StoreError as e:
            logger.warning(f"Failed to read feed {scope.describe()}: {e}")
            return ""
        if cached_at is None:
            return ""
        return TimedCacheEntry(cached_at, self.VALIDITY).age_string(self.clock())


__all__ = [
    "FeedCacheService",
    "BOUNDS_FIELD",
    "ALL_HISTORY_FIELD",
    "LAST_CHECK_FIELD",
]
