from __future__ import annotations

import copy
import hashlib
import json
from enum import Enum
from typing import Any, Mapping


def content_hash(payload: Any) -> str:
    """Stable sha256 of a payload: key order and whitespace do not matter."""
    canonical = json.dumps(_plain(payload), sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def clean_payload(payload: Mapping[str, Any] | None) -> dict[str, Any]:
    """Deep copy of a form payload with enums flattened to their values."""
    return _plain(copy.deepcopy(dict(payload or {})))


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, set):
        return sorted(_plain(v) for v in value)
    return value
