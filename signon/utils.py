"""Module contains utils."""
from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from typing import Any


def merge_dicts(merged: Mapping[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Merge two dicts recursively, where `source` values takes precedance over `merged` values."""
    merged = dict(deepcopy(merged))
    source = deepcopy(source)

    for key in source:
        if (
            key in merged
            and isinstance(merged[key], Mapping)
            and isinstance(source[key], Mapping)
        ):
            merged[key] = merge_dicts(merged[key], source[key])
        else:
            value = source[key]
            if isinstance(value, str) and value.lower() == 'none':
                value = None
            merged[key] = value

    return merged


def elapsed_ms(start: float, end: float) -> int:
    return int((end - start) * 1000)
