"""Timed cache record shared by the per-domain cache services.

A record is two fields of one scope: the JSON payload (wrapped in a
versioned envelope) and the integer write time in epoch milliseconds.
Both are written in one store transaction. A record whose write time is
missing, or whose payload cannot be decoded, reads as a miss.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Generic, Iterable, Optional, TypeVar

from cache.freshness import Clock, TimedCacheEntry, now_millis, validate_validity
from cache.store import CacheStore, ScopeKey
from utils.errors import CacheDecodeError, ScopeError, StoreError
from models.codec import decode_envelope, encode_envelope

logger = logging.getLogger(__name__)

T = TypeVar("T")

PAYLOAD_FIELD = "payload"
CACHED_AT_FIELD = "cached_at"


@dataclass
class CacheResult(Generic[T]):
    """A cache hit: decoded payload, write time and freshness at read time."""

    payload: T
    cached_at_ms: int
    is_valid: bool

    @property
    def cached_at(self) -> datetime:
        return datetime.fromtimestamp(self.cached_at_ms / 1000)


def build_scope(
    domain: str,
    user_id: Any,
    tenant_abbr: str,
    session_id: Optional[Any] = None,
    session_scoped: bool = True,
) -> ScopeKey:
    """Build the scope of one cache partition from caller identifiers.

    Args:
        domain: Cache domain name
        user_id: Portal user id (converted to str)
        tenant_abbr: School/tenant abbreviation
        session_id: Academic session id, required when session_scoped
        session_scoped: Whether the domain's data depends on the session

    Raises:
        ScopeError: If a required component is missing or malformed
    """
    if session_scoped:
        if session_id is None:
            raise ScopeError(
                f"Domain '{domain}' is session-scoped but no session_id was given",
                context={"domain": domain},
            )
        session = str(session_id)
    else:
        session = None
    return ScopeKey(
        domain=domain,
        tenant_abbr=tenant_abbr,
        user_id=str(user_id) if user_id is not None else "",
        session_id=session,
    )


class TimedCache(Generic[T]):
    """One domain's payload record with a fixed validity window."""

    def __init__(
        self,
        store: CacheStore,
        domain: str,
        validity: Optional[timedelta],
        codec_version: int,
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
        session_scoped: bool = True,
        clock: Optional[Clock] = None,
    ):
        """Initialize the record accessor.

        Args:
            store: Shared scoped store
            domain: Domain name, first component of every key
            validity: Freshness window, or NEVER_EXPIRES
            codec_version: Version written into and required from the envelope
            encode: Payload -> JSON-compatible structure
            decode: JSON-compatible structure -> payload (raises CacheDecodeError)
            session_scoped: Whether keys include the academic session
            clock: Millisecond clock, injectable for tests
        """
        self.store = store
        self.domain = domain
        self.validity = validate_validity(validity)
        self.codec_version = codec_version
        self.encode = encode
        self.decode = decode
        self.session_scoped = session_scoped
        self.clock = clock or now_millis

    def scope(self, user_id: Any, tenant_abbr: str, session_id: Optional[Any] = None) -> ScopeKey:
        return build_scope(self.domain, user_id, tenant_abbr, session_id, self.session_scoped)

    async def put(
        self,
        scope: ScopeKey,
        payload: T,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Write the payload and the current time in one transaction.

        Args:
            scope: Target partition
            payload: Typed payload
            extra_fields: Additional fields of the same scope to write atomically

        Returns:
            True if the write was applied
        """
        values = {
            PAYLOAD_FIELD: encode_envelope(self.codec_version, self.encode(payload)),
            CACHED_AT_FIELD: self.clock(),
        }
        if extra_fields:
            values.update(extra_fields)
        try:
            await self.store.set_fields(scope, values)
        except StoreError as e:
            logger.warning(f"Failed to cache {scope.describe()}: {e}")
            return False
        logger.debug(f"Cached {scope.describe()}")
        return True

    async def get(self, scope: ScopeKey) -> Optional[CacheResult[T]]:
        """Read and decode the record.

        Returns:
            CacheResult, or None when absent, incomplete or undecodable
        """
        try:
            cached_at = await self.store.get_int(scope, CACHED_AT_FIELD)
            if cached_at is None:
                logger.debug(f"Cache miss: {scope.describe()}")
                return None
            text = await self.store.get_string(scope, PAYLOAD_FIELD)
        except StoreError as e:
            logger.warning(f"Failed to read {scope.describe()}: {e}")
            return None

        if text is None:
            logger.debug(f"Cache miss (no payload): {scope.describe()}")
            return None

        try:
            payload = self.decode(decode_envelope(text, self.codec_version, self.domain))
        except CacheDecodeError as e:
            logger.warning(f"Discarding undecodable cache entry {scope.describe()}: {e}")
            return None

        entry = TimedCacheEntry(cached_at, self.validity)
        is_valid = entry.is_fresh(self.clock())
        logger.debug(f"Cache hit: {scope.describe()} (valid={is_valid})")
        return CacheResult(payload=payload, cached_at_ms=cached_at, is_valid=is_valid)

    async def get_field(self, scope: ScopeKey, field: str) -> Optional[str]:
        """Read an auxiliary string field; store errors read as None."""
        try:
            return await self.store.get_string(scope, field)
        except StoreError as e:
            logger.warning(f"Failed to read {scope.describe()}.{field}: {e}")
            return None

    async def clear(self, scope: ScopeKey, extra_fields: Iterable[str] = ()) -> None:
        fields = [PAYLOAD_FIELD, CACHED_AT_FIELD, *extra_fields]
        try:
            removed = await self.store.remove_fields(scope, fields)
        except StoreError as e:
            logger.warning(f"Failed to clear {scope.describe()}: {e}")
            return
        logger.debug(f"Cleared {scope.describe()} ({removed} entries)")

    async def is_valid(self, scope: ScopeKey) -> bool:
        """Whether a fresh record exists, judged from the write time alone.

        The payload is not decoded, so a fresh but corrupt record still
        counts as valid here and reads as a miss through get().
        """
        try:
            cached_at = await self.store.get_int(scope, CACHED_AT_FIELD)
        except StoreError as e:
            logger.warning(f"Failed to read {scope.describe()}: {e}")
            return False
        if cached_at is None:
            return False
        return TimedCacheEntry(cached_at, self.validity).is_fresh(self.clock())

    async def age_string(self, scope: ScopeKey) -> str:
        """Age of the record ("5m ago"), or '' when nothing is cached."""
        try:
            cached_at = await self.store.get_int(scope, CACHED_AT_FIELD)
        except StoreError as e:
            logger.warning(f"Failed to read {scope.describe()}: {e}")
            return ""
        if cached_at is None:
            return ""
        return TimedCacheEntry(cached_at, self.validity).age_string(self.clock())


__all__ = [
    "PAYLOAD_FIELD",
    "CACHED_AT_FIELD",
    "CacheResult",
    "build_scope",
    "TimedCache",
]
