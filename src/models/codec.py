"""Shape checks shared by the payload codecs.

Every decode helper raises CacheDecodeError on unexpected input so callers
can treat a malformed record as a cache miss.
"""

import json
from typing import Any, Dict, Iterable, List, Optional

from utils.errors import CacheDecodeError


def require_mapping(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise CacheDecodeError(f"{what}: expected object, got {type(value).__name__}")
    return value


def require_list(value: Any, what: str) -> List[Any]:
    if not isinstance(value, list):
        raise CacheDecodeError(f"{what}: expected array, got {type(value).__name__}")
    return value


def check_keys(
    data: Dict[str, Any],
    what: str,
    required: Iterable[str] = (),
    optional: Iterable[str] = (),
) -> None:
    """Reject objects with missing required keys or unknown keys."""
    required = set(required)
    allowed = required | set(optional)
    missing = required - data.keys()
    if missing:
        raise CacheDecodeError(f"{what}: missing keys {sorted(missing)}")
    unknown = data.keys() - allowed
    if unknown:
        raise CacheDecodeError(f"{what}: unknown keys {sorted(unknown)}")


def require_str(data: Dict[str, Any], key: str, what: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise CacheDecodeError(f"{what}.{key}: expected string, got {type(value).__name__}")
    return value


def optional_str(data: Dict[str, Any], key: str, what: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise CacheDecodeError(f"{what}.{key}: expected string or null, got {type(value).__name__}")
    return value


def require_bool(data: Dict[str, Any], key: str, what: str) -> bool:
    value = data.get(key)
    if not isinstance(value, bool):
        raise CacheDecodeError(f"{what}.{key}: expected boolean, got {type(value).__name__}")
    return value


def require_number(data: Dict[str, Any], key: str, what: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CacheDecodeError(f"{what}.{key}: expected number, got {type(value).__name__}")
    return float(value)


def str_map(value: Any, what: str) -> Dict[str, str]:
    """Decode a JSON object whose values are all strings."""
    mapping = require_mapping(value, what)
    for key, item in mapping.items():
        if not isinstance(item, str):
            raise CacheDecodeError(f"{what}[{key!r}]: expected string, got {type(item).__name__}")
    return dict(mapping)


def str_list(value: Any, what: str) -> List[str]:
    items = require_list(value, what)
    for index, item in enumerate(items):
        if not isinstance(item, str):
            raise CacheDecodeError(f"{what}[{index}]: expected string, got {type(item).__name__}")
    return list(items)


def encode_envelope(version: int, data: Any) -> str:
    """Serialize a payload together with its codec version."""
    return json.dumps({"version": version, "data": data}, ensure_ascii=False)


def decode_envelope(text: str, version: int, what: str) -> Any:
    """Parse an envelope and return its data if the codec version matches.

    Raises:
        CacheDecodeError: On invalid JSON, wrong envelope shape or version
    """
    try:
        envelope = json.loads(text)
    except (TypeError, ValueError) as e:
        raise CacheDecodeError(f"{what}: invalid JSON ({e})", original_error=e) from e
    envelope = require_mapping(envelope, what)
    check_keys(envelope, what, required=("version", "data"))
    if envelope["version"] != version:
        raise CacheDecodeError(
            f"{what}: codec version {envelope['version']!r} does not match {version}",
            context={"stored_version": envelope["version"], "expected_version": version},
        )
    return envelope["data"]
