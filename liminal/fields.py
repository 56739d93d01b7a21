"""Dot-path access to values inside nested JSON-like payloads."""

from __future__ import annotations

from typing import Any

_MISSING = object()


def extract_field_value(payload: Any, field_path: str, default: Any = None) -> Any:
    """Return the value at a dot-separated path, or ``default`` if it is absent.

    Only mappings are traversed; a path that runs into any other value is absent.
    """
    current = payload
    for part in field_path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def set_field_value(payload: Any, field_path: str, value: Any) -> dict:
    """Set the value at a dot-separated path, creating intermediate objects.

    The payload is modified in place and returned. A payload that is not a
    mapping is replaced by a new, empty one, which is what gets returned.
    Raises ``ValueError`` when the path runs through a value that is not an
    object.
    """
    *parents, leaf = field_path.split(".")
    if not isinstance(payload, dict):
        payload = {}

    current: Any = payload
    for part in parents:
        if not isinstance(current, dict):
            raise ValueError(f"Cannot navigate through non-object value at '{part}'")
        current = current.setdefault(part, {})

    if not isinstance(current, dict):
        raise ValueError("Cannot set field on non-object value")
    current[leaf] = value
    return payload


def remove_field_value(payload: Any, field_path: str) -> None:
    """Remove the value at a dot-separated path; a missing path is left alone."""
    *parents, leaf = field_path.split(".")
    current = payload
    for part in parents:
        if not isinstance(current, dict) or part not in current:
            return
        current = current[part]
    if isinstance(current, dict):
        current.pop(leaf, None)


def field_exists(payload: Any, field_path: str) -> bool:
    """Tell whether a value, null included, exists at the dot-separated path."""
    return extract_field_value(payload, field_path, _MISSING) is not _MISSING