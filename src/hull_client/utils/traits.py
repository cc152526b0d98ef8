"""Helpers for flat trait payloads."""

from typing import Any

TRAITS_PREFIX = "traits_"


def group(entity: dict[str, Any]) -> dict[str, Any]:
    """Group flat, ``/``-delimited traits into nested objects.

    Example:
        >>> group({"email": "a@b.c", "traits_cb/twitter_bio": "x", "traits_size": 1})
        {'email': 'a@b.c', 'cb': {'twitter_bio': 'x'}, 'traits': {'size': 1}}
    """
    grouped: dict[str, Any] = {}
    for key, value in entity.items():
        dest = key
        if key.startswith(TRAITS_PREFIX):
            name = key[len(TRAITS_PREFIX):]
            dest = name if "/" in name else f"traits/{name}"

        *parents, leaf = dest.split("/")
        node = grouped
        for part in parents:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[leaf] = value
    return grouped


def normalize(traits: dict[str, Any]) -> dict[str, Any]:
    """Express every trait as an ``{"operation", "value"}`` pair, defaulting to ``set``."""
    normalized: dict[str, Any] = {}
    for key, value in traits.items():
        if isinstance(value, dict):
            value = {"operation": "set", **value} if not value.get("operation") else dict(value)
        else:
            value = {"operation": "set", "value": value}
        normalized[key] = value
    return normalized
