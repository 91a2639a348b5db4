"""Coercion and pruning of decoded attribute values.

Decoders report whatever a payload carried, including empty strings and
empty containers for fields the packet did not populate. Those are pruned
before a dynamb or statid reaches the store, so that an empty report never
overwrites a property the device already has.
"""

from __future__ import annotations

import math
from typing import Any

_EMPTY_CONTAINERS = (str, dict, list)


def coerce_int(value: Any) -> int | None:
    """Return *value* as an int, or ``None`` if it is not a finite number.

    Numeric strings are accepted (``"-67.8"`` gives ``-67``); booleans are not.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if math.isfinite(number) else None


def has_value(value: Any) -> bool:
    """False for ``None`` and empty strings, dicts and lists."""
    if value is None:
        return False
    if isinstance(value, _EMPTY_CONTAINERS):
        return len(value) > 0
    return True


def prune_empty(data: Any) -> Any:
    """Drop empty values from decoded attributes, depth first.

    A container left empty once its own empty values are gone is itself
    dropped by its parent. ``0`` and ``False`` are kept.
    """
    if isinstance(data, dict):
        pruned = {key: prune_empty(value) for key, value in data.items()}
        return {key: value for key, value in pruned.items() if has_value(value)}
    if isinstance(data, list):
        return [item for item in map(prune_empty, data) if has_value(item)]
    return data
