"""
Configuration merger for Chatdeck.

Implements deep merge with list operations (+/- key prefixes).
"""

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Merge rules:
    - Scalars and lists: override replaces base
    - Dicts: recursive merge
    - ``+key`` with a list: append items missing from base
    - ``-key`` with a list: remove items from base
    - ``None`` value: remove key

    Args:
        base: Base configuration dictionary.
        override: Override configuration dictionary.

    Returns:
        Merged configuration dictionary.

    Examples:
        >>> deep_merge({"chat": {"preview_length": 100}}, {"chat": {"preview_length": 60}})
        {'chat': {'preview_length': 60}}
    """
    result = base.copy()

    for key, value in override.items():
        if key.startswith("+") and isinstance(value, list):
            actual_key = key[1:]
            current = result.get(actual_key)
            if isinstance(current, list):
                result[actual_key] = current + [item for item in value if item not in current]
            else:
                result[actual_key] = value

        elif key.startswith("-") and isinstance(value, list):
            actual_key = key[1:]
            current = result.get(actual_key)
            if isinstance(current, list):
                result[actual_key] = [item for item in current if item not in value]

        elif value is None:
            result.pop(key, None)

        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)

        else:
            result[key] = value

    return result


def get_nested_value(config: dict[str, Any], key_path: str) -> Any:
    """
    Get a nested value by dot-separated path, or None if absent.

    Examples:
        >>> get_nested_value({"chat": {"preview_length": 80}}, "chat.preview_length")
        80
    """
    current: Any = config
    for key in key_path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return None
    return current


def set_nested_value(config: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    """
    Set a nested value by dot-separated path, creating intermediate dicts.

    Returns:
        The modified configuration dictionary.
    """
    keys = key_path.split(".")
    current = config

    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]

    current[keys[-1]] = value
    return config
