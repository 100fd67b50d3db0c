"""Normalization helpers.

Centralizes defensive parsing and the rewriting of legacy frame layouts
into the canonical flattened shape::

    {"type": "init", "sources": [{"id", "shortName", "fullName"}],
     "chains": [{"id", "fullName", "blockTimeSecs"}]}
    {"type": "update", "source", "chain", "height", "hash", "ts"}

Older feed servers sent bare ids with parallel name arrays, nested
``state`` objects, and ``firstSeenTs``/``lastCheckedTs`` instead of
``ts``.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def normalize_timestamp_seconds(value: Any) -> float | None:
    """Normalize feed timestamps to epoch seconds.

    - Empty/missing -> None
    - < 0 -> None
    - Milliseconds (>= 1e12) -> seconds
    """

    ts = safe_float(value)
    if ts is None or ts < 0:
        return None
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    return ts


def _item(values: Any, index: int) -> Any:
    if isinstance(values, Sequence) and not isinstance(values, (str, bytes)) and index < len(values):
        return values[index]
    return None


def _catalog_entries(
    entries: Any,
    *,
    full_names: Any = None,
    block_times: Any = None,
) -> Any:
    """Expand bare scalar ids into ``{"id": ...}`` objects.

    Entries that are already objects pass through untouched; anything that
    is not a list is returned as-is so validation reports it.
    """

    if not isinstance(entries, list):
        return entries
    expanded: list[Any] = []
    for index, entry in enumerate(entries):
        if isinstance(entry, dict):
            expanded.append(entry)
            continue
        item: dict[str, Any] = {"id": entry}
        full_name = _item(full_names, index)
        if full_name is not None:
            item["fullName"] = full_name
        block_time = _item(block_times, index)
        if block_time is not None:
            item["blockTimeSecs"] = block_time
        expanded.append(item)
    return expanded


def normalize_init_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Rewrite a legacy ``init`` payload into the canonical layout."""
    normalized = dict(payload)
    normalized["sources"] = _catalog_entries(
        payload.get("sources"),
        full_names=payload.get("sourceFullNames"),
    )
    normalized["chains"] = _catalog_entries(
        payload.get("chains"),
        full_names=payload.get("chainFullNames"),
        block_times=payload.get("chainBlockTimes"),
    )
    for legacy_key in ("sourceFullNames", "chainFullNames", "chainBlockTimes"):
        normalized.pop(legacy_key, None)
    return normalized


def _unwrap_id(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("id")
    return value


def normalize_update_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Rewrite a legacy ``update`` payload into the canonical layout."""
    normalized = dict(payload)

    nested = payload.get("state")
    if isinstance(nested, dict):
        for key in ("height", "hash"):
            if key not in normalized and key in nested:
                normalized[key] = nested[key]
        for key in ("firstSeenTs", "lastCheckedTs"):
            if key in nested:
                normalized.setdefault(key, nested[key])
        normalized.pop("state", None)

    normalized["source"] = _unwrap_id(normalized.get("source"))
    normalized["chain"] = _unwrap_id(normalized.get("chain"))

    if normalized.get("ts") is None:
        for key in ("lastCheckedTs", "firstSeenTs"):
            if normalized.get(key) is not None:
                normalized["ts"] = normalized[key]
                break
    return normalized
