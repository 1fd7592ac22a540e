"""Feed models: cached pages of announcement items.

Feed items are opaque portal records. Only two attributes matter to the
cache: the item id and the publication timestamp, which together form the
composite identity of an item. The portal sends attribute-typed values
({"N": "1700000000"} / {"S": "..."}); plain scalars are accepted too.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from utils.errors import CacheDecodeError
from models.codec import check_keys, require_bool, require_list, require_mapping

FeedItem = Dict[str, Any]
ItemKey = Tuple[str, str]

DEFAULT_ID_FIELD = "itemId"
DEFAULT_TIMESTAMP_FIELD = "timeStamp"

_TYPED_ATTRIBUTE_TAGS = ("N", "S")


class FeedState(Enum):
    """Pagination state of one feed scope."""

    EMPTY = "empty"        # nothing cached
    PARTIAL = "partial"    # a window of items cached, older pages may exist
    COMPLETE = "complete"  # every older page has been fetched at least once


def attribute_value(item: FeedItem, name: str) -> Any:
    """Read an attribute, unwrapping a typed {"N": ...} / {"S": ...} value."""
    value = item.get(name)
    if isinstance(value, dict) and len(value) == 1:
        tag = next(iter(value))
        if tag in _TYPED_ATTRIBUTE_TAGS:
            return value[tag]
    return value


@dataclass(frozen=True)
class FeedItemSchema:
    """Names of the id and timestamp attributes of feed items."""

    id_field: str = DEFAULT_ID_FIELD
    timestamp_field: str = DEFAULT_TIMESTAMP_FIELD

    def key(self, item: FeedItem) -> ItemKey:
        """Composite (item id, timestamp) identity of an item."""
        item_id = attribute_value(item, self.id_field)
        timestamp = attribute_value(item, self.timestamp_field)
        return (
            "" if item_id is None else str(item_id),
            "" if timestamp is None else str(timestamp),
        )

    def timestamp(self, item: FeedItem) -> int:
        """Numeric timestamp of an item; 0 when missing or unparseable."""
        raw = attribute_value(item, self.timestamp_field)
        if raw is None or isinstance(raw, bool):
            return 0
        try:
            return int(raw)
        except (TypeError, ValueError):
            pass
        try:
            return int(float(raw))
        except (TypeError, ValueError, OverflowError):
            return 0

    def has_timestamp(self, item: FeedItem) -> bool:
        return self.timestamp(item) != 0

    def normalize(self, items: List[FeedItem]) -> List[FeedItem]:
        """Drop repeated keys (first occurrence wins) and sort newest first.

        The sort is stable, so items with equal timestamps keep their
        relative order; items without a timestamp sort last.
        """
        seen = set()
        unique = []
        for item in items:
            key = self.key(item)
            if key in seen:
                continue
            seen.add(key)
            unique.append(item)
        return sorted(unique, key=self.timestamp, reverse=True)


@dataclass
class CachedFeed:
    """Snapshot of a cached feed as returned to callers."""

    items: List[FeedItem]
    cached_at_ms: int
    next_page: Any = None
    has_more: bool = True
    all_history_loaded: bool = False
    oldest_timestamp: Optional[int] = None
    newest_timestamp: Optional[int] = None
    is_valid: bool = False

    @property
    def state(self) -> FeedState:
        return FeedState.COMPLETE if self.all_history_loaded else FeedState.PARTIAL


@dataclass
class FeedPage:
    """Persisted part of a feed: items plus the pagination cursor."""

    items: List[FeedItem] = field(default_factory=list)
    next_page: Any = None
    has_more: bool = True

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "items": self.items,
            "next_page": self.next_page,
            "has_more": self.has_more,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "FeedPage":
        data = require_mapping(data, "feed page")
        check_keys(data, "feed page", required=("items", "has_more"), optional=("next_page",))
        items = require_list(data["items"], "feed page.items")
        return cls(
            items=[require_mapping(item, "feed item") for item in items],
            next_page=data.get("next_page"),
            has_more=require_bool(data, "has_more", "feed page"),
        )


@dataclass
class TimestampBounds:
    """Oldest and newest item timestamps seen in a feed scope."""

    oldest: Optional[int] = None
    newest: Optional[int] = None

    def widened(self, timestamps: List[int]) -> "TimestampBounds":
        """Return bounds covering both these bounds and the given timestamps."""
        values = [t for t in timestamps if t]
        if self.oldest is not None:
            values.append(self.oldest)
        if self.newest is not None:
            values.append(self.newest)
        if not values:
            return TimestampBounds()
        return TimestampBounds(oldest=min(values), newest=max(values))

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {"oldest": self.oldest, "newest": self.newest}

    @classmethod
    def from_dict(cls, data: Any) -> "TimestampBounds":
        data = require_mapping(data, "feed bounds")
        check_keys(data, "feed bounds", optional=("oldest", "newest"))
        bounds = {}
        for key in ("oldest", "newest"):
            value = data.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise CacheDecodeError(f"feed bounds.{key}: expected integer or null")
            bounds[key] = value
        return cls(**bounds)
