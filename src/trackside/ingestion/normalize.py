"""Normalization helpers.

Centralizes defensive parsing and placeholder handling.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    if isinstance(value, bool):
        return float(value)
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


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def is_meaningful(value: Any) -> bool:
    """Return True if the value should be included in a state patch.

    This is intentionally opinionated and exists to keep the state/store layer
    free of placeholder/sentinel filtering.
    """

    if value is None:
        return False
    if value == "":
        return False
    if value == "--":
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    if value == {}:
        return False
    return bool(value != [])


def prune_patch(data: Any) -> Any:
    """Recursively drop non-meaningful values from a patch structure.

    - Dicts: remove keys with non-meaningful values; recurse into nested dicts/lists.
    - Lists: prune elements and drop non-meaningful items.
    - Scalars: returned as-is.

    The store's sparse merge assumes incoming patches are already pruned, so a
    missing key always means "no update".
    """

    if isinstance(data, dict):
        pruned: dict[str, Any] = {}
        for key, value in data.items():
            cleaned = prune_patch(value)
            if is_meaningful(cleaned):
                pruned[key] = cleaned
        return pruned

    if isinstance(data, list):
        items: list[Any] = []
        for item in data:
            cleaned = prune_patch(item)
            if is_meaningful(cleaned):
                items.append(cleaned)
        return items

    return data
