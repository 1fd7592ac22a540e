"""Scoped key-value access for the domain caches.

Every cached record belongs to a scope: the (domain, tenant, user, session)
tuple of one logical cache partition. CacheStore turns a scope plus a field
name into a storage key and forwards typed reads and writes to the backing
store (CacheDatabase or MemoryStore).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol

from cache.database import StoreValue
from utils.errors import ScopeError

logger = logging.getLogger(__name__)

# Separator between key components; forbidden inside every component
KEY_SEPARATOR = "|"


class KeyValueStore(Protocol):
    """Persistent string/int/bool store consumed by CacheStore."""

    async def initialize(self) -> None: ...

    async def get_string(self, key: str) -> Optional[str]: ...

    async def get_int(self, key: str) -> Optional[int]: ...

    async def get_bool(self, key: str) -> Optional[bool]: ...

    async def set_string(self, key: str, value: str) -> None: ...

    async def set_int(self, key: str, value: int) -> None: ...

    async def set_bool(self, key: str, value: bool) -> None: ...

    async def set_many(self, values: Dict[str, StoreValue]) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def remove_many(self, keys: Iterable[str]) -> int: ...

    async def compare_and_set_int(self, key: str, expected: Optional[int], new: int) -> bool: ...

    async def find_keys(self, contains: str = "") -> List[str]: ...

    async def clear_all(self) -> int: ...


def _check_component(name: str, value: object) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ScopeError(
            f"Scope component '{name}' must be a non-empty string, got {value!r}",
            context={"component": name},
        )
    if KEY_SEPARATOR in value:
        raise ScopeError(
            f"Scope component '{name}' may not contain '{KEY_SEPARATOR}': {value!r}",
            context={"component": name},
        )


@dataclass(frozen=True)
class ScopeKey:
    """Identity of one cache partition.

    session_id is None for domains whose data does not depend on the
    academic session (profile, session list, fee receipts).
    """

    domain: str
    tenant_abbr: str
    user_id: str
    session_id: Optional[str] = None

    def __post_init__(self):
        _check_component("domain", self.domain)
        _check_component("tenant_abbr", self.tenant_abbr)
        _check_component("user_id", self.user_id)
        if self.session_id is not None:
            _check_component("session_id", self.session_id)

    @property
    def prefix(self) -> str:
        """Key prefix shared by every field of this scope."""
        parts = [self.domain, self.tenant_abbr, self.user_id]
        if self.session_id is not None:
            parts.append(self.session_id)
        return KEY_SEPARATOR.join(parts)

    def storage_key(self, field: str) -> str:
        """Build the storage key for one field of this scope.

        Args:
            field: Field name within the scope (e.g. "payload", "cached_at")

        Returns:
            Collision-free storage key
        """
        _check_component("field", field)
        # No component contains the separator, so equal keys imply equal scopes
        return f"{self.prefix}{KEY_SEPARATOR}{field}"

    def describe(self) -> str:
        session = self.session_id if self.session_id is not None else "-"
        return f"{self.domain}[tenant={self.tenant_abbr} user={self.user_id} session={session}]"


class CacheStore:
    """Thin scoped wrapper over a KeyValueStore."""

    def __init__(self, backend: KeyValueStore):
        """Initialize the scoped store.

        Args:
            backend: Shared key-value store handle (owned by the composition root)
        """
        self.backend = backend

    async def initialize(self) -> None:
        await self.backend.initialize()

    async def get_string(self, scope: ScopeKey, field: str) -> Optional[str]:
        return await self.backend.get_string(scope.storage_key(field))

    async def get_int(self, scope: ScopeKey, field: str) -> Optional[int]:
        return await self.backend.get_int(scope.storage_key(field))

    async def get_bool(self, scope: ScopeKey, field: str) -> Optional[bool]:
        return await self.backend.get_bool(scope.storage_key(field))

    async def set_string(self, scope: ScopeKey, field: str, value: str) -> None:
        await self.backend.set_string(scope.storage_key(field), value)

    async def set_int(self, scope: ScopeKey, field: str, value: int) -> None:
        await self.backend.set_int(scope.storage_key(field), value)

    async def set_bool(self, scope: ScopeKey, field: str, value: bool) -> None:
        await self.backend.set_bool(scope.storage_key(field), value)

    async def set_fields(self, scope: ScopeKey, values: Dict[str, StoreValue]) -> None:
        """Write several fields of one scope in a single store transaction."""
        await self.backend.set_many(
            {scope.storage_key(field): value for field, value in values.items()}
        )

    async def remove(self, scope: ScopeKey, field: str) -> None:
        await self.backend.remove(scope.storage_key(field))

    async def remove_fields(self, scope: ScopeKey, fields: Iterable[str]) -> int:
        return await self.backend.remove_many([scope.storage_key(field) for field in fields])

    async def compare_and_set_int(
        self,
        scope: ScopeKey,
        field: str,
        expected: Optional[int],
        new: int,
    ) -> bool:
        return await self.backend.compare_and_set_int(scope.storage_key(field), expected, new)


__all__ = ["KEY_SEPARATOR", "KeyValueStore", "ScopeKey", "CacheStore"]
