"""
Settings merging for skillkeeper.

Merges settings dictionaries layer by layer. List values can be extended or
reduced instead of replaced by prefixing the key with ``+`` or ``-``.
"""

from typing import Any


def _merge_list(current: Any, items: list[Any], remove: bool) -> list[Any]:
    existing = current if isinstance(current, list) else []
    if remove:
        return [item for item in existing if item not in items]
    return existing + [item for item in items if item not in existing]


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two settings dictionaries.

    Merge rules:
    - Scalars and lists: override replaces base
    - Dicts: merged recursively
    - ``+key`` with a list: items appended to ``key`` (no duplicates)
    - ``-key`` with a list: items removed from ``key``
    - None: key removed

    Args:
        base: Base dictionary (not modified).
        override: Dictionary layered on top.

    Returns:
        Merged dictionary.

    Examples:
        >>> deep_merge({"scan": {"global_paths": ["~/.claude/skills/"]}},
        ...            {"scan": {"+global_paths": ["~/skills/"]}})
        {'scan': {'global_paths': ['~/.claude/skills/', '~/skills/']}}
    """
    result = dict(base)

    for key, value in override.items():
        if key[:1] in ("+", "-") and isinstance(value, list):
            actual_key = key[1:]
            if key[0] == "-" and actual_key not in result:
                continue
            result[actual_key] = _merge_list(result.get(actual_key), value, remove=key[0] == "-")
        elif value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def get_nested_value(data: dict[str, Any], key_path: str) -> Any:
    """
    Get a value by dotted key path (e.g. ``github.timeout``).

    Returns:
        The value, or None if any part of the path is missing.
    """
    current: Any = data
    for key in key_path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def set_nested_value(data: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    """
    Set a value by dotted key path, creating intermediate dictionaries.

    Returns:
        The same dictionary, modified in place.
    """
    *parents, last = key_path.split(".")
    current = data
    for key in parents:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[last] = value
    return data
