"""Recursive merge of option mappings."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def merge_deep(base: Mapping[Any, Any], *others: Mapping[Any, Any]) -> dict[Any, Any]:
    """Merge mappings left to right into a new dict.

    For each key of an incoming mapping: when both the existing and the
    incoming value are mappings they are merged recursively, otherwise the
    incoming value replaces the existing one. Keys missing from the incoming
    mapping are kept. No argument is mutated.

    Example:
        merge_deep({"a": {"x": 1, "y": 2}}, {"a": {"y": 9}})
        # -> {"a": {"x": 1, "y": 9}}
    """
    result = dict(base)
    for other in others:
        result = _merge_pair(result, other)
    return result


def _merge_pair(base: dict[Any, Any], other: Mapping[Any, Any]) -> dict[Any, Any]:
    for key, value in other.items():
        existing = base.get(key)
        if isinstance(value, Mapping):
            if isinstance(existing, Mapping):
                base[key] = _merge_pair(dict(existing), value)
            else:
                base[key] = _copy_mapping(value)
        else:
            base[key] = value
    return base


def _copy_mapping(data: Mapping[Any, Any]) -> dict[Any, Any]:
    """Copy nested mappings so later merges never write into caller data."""
    return {
        k: _copy_mapping(v) if isinstance(v, Mapping) else v
        for k, v in data.items()
    }
