"""Process-local key-value store for campuscache.

Same async interface as CacheDatabase, without durability. Each method runs
without awaiting, so every call is atomic with respect to other tasks on
the same event loop.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from cache.database import StoreValue

logger = logging.getLogger(__name__)


class MemoryStore:
    """Dictionary-backed store suitable for tests and ephemeral sessions."""

    def __init__(self):
        self._rows: Dict[str, Tuple[str, StoreValue]] = {}

    async def initialize(self) -> None:
        return None

    def _get(self, key: str, value_type: str) -> Optional[StoreValue]:
        row = self._rows.get(key)
        if row is None:
            return None
        stored_type, value = row
        if stored_type != value_type:
            logger.warning(
                f"Type mismatch for key {key}: stored {stored_type}, requested {value_type}"
            )
            return None
        return value

    async def get_string(self, key: str) -> Optional[str]:
        return self._get(key, "str")

    async def get_int(self, key: str) -> Optional[int]:
        return self._get(key, "int")

    async def get_bool(self, key: str) -> Optional[bool]:
        return self._get(key, "bool")

    async def set_string(self, key: str, value: str) -> None:
        self._rows[key] = ("str", value)

    async def set_int(self, key: str, value: int) -> None:
        self._rows[key] = ("int", int(value))

    async def set_bool(self, key: str, value: bool) -> None:
        self._rows[key] = ("bool", bool(value))

    async def set_many(self, values: Dict[str, StoreValue]) -> None:
        staged = {}
        for key, value in values.items():
            if isinstance(value, bool):
                staged[key] = ("bool", value)
            elif isinstance(value, int):
                staged[key] = ("int", value)
            elif isinstance(value, str):
                staged[key] = ("str", value)
            else:
                raise TypeError(f"Unsupported store value type: {type(value).__name__}")
        self._rows.update(staged)

    async def remove(self, key: str) -> None:
        self._rows.pop(key, None)

    async def remove_many(self, keys: Iterable[str]) -> int:
        removed = 0
        for key in keys:
            if self._rows.pop(key, None) is not None:
                removed += 1
        return removed

    async def compare_and_set_int(self, key: str, expected: Optional[int], new: int) -> bool:
        row = self._rows.get(key)
        if expected is None:
            # Only a readable int blocks the insert; other rows are replaced
            if row is not None and row[0] == "int":
                return False
        elif row != ("int", expected):
            return False
        self._rows[key] = ("int", new)
        return True

    async def find_keys(self, contains: str = "") -> List[str]:
        return sorted(key for key in self._rows if contains in key)

    async def clear_all(self) -> int:
        count = len(self._rows)
        self._rows.clear()
        return count


__all__ = ["MemoryStore"]
