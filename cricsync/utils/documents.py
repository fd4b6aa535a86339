"""Helpers for working with nested JSON documents."""

import copy
from typing import Any, Dict, Optional


def data_get(data: Any, path: str, default: Any = None) -> Any:
    """Read a value from nested dicts using a dotted path.

    Args:
        data: Nested dict (or anything else, which yields the default)
        path: Dotted key path, e.g. 'squads.team1.players'
        default: Returned when any segment is missing

    Returns:
        The value at the path or the default
    """
    current = data
    for segment in path.split('.'):
        if not isinstance(current, dict) or segment not in current:
            return default
        current = current[segment]
    return current


def deep_merge(existing: Optional[Dict[str, Any]], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Merge incoming into existing the way a merge-set on a document store does.

    Nested maps are merged key by key; every other value (lists included)
    replaces what was stored.
    """
    result = copy.deepcopy(existing) if existing else {}

    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def lower_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Lower-case string keys of a dict and of its directly nested dicts."""
    result: Dict[str, Any] = {}

    for key, value in data.items():
        new_key = key.lower() if isinstance(key, str) else key
        if isinstance(value, dict):
            result[new_key] = {
                (k.lower() if isinstance(k, str) else k): v for k, v in value.items()
            }
        else:
            result[new_key] = value

    return result
