"""Helpers shared by the pipeline operations."""

from __future__ import annotations

import math
from typing import Any, Callable, List, Optional, Union

ProgressCallback = Callable[[str], None]
Number = Union[int, float]


def notify(progress: Optional[ProgressCallback], message: str) -> None:
    if progress is not None:
        progress(message)


def as_str_list(value: Any) -> List[str]:
    """Coerce untrusted tool output into a list of non-empty strings."""
    if not isinstance(value, list):
        return []
    items: List[str] = []
    for item in value:
        if isinstance(item, (str, int, float)) and not isinstance(item, bool):
            text = str(item).strip()
            if text:
                items.append(text)
    return items


def as_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def as_number(value: Any) -> Optional[Number]:
    """Coerce to a finite, non-negative number; anything else is absent."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float):
        if not math.isfinite(value) or value < 0:
            return None
        return int(value) if value.is_integer() else value
    return value if value >= 0 else None


def as_count(value: Any) -> Optional[int]:
    number = as_number(value)
    if number is None:
        return None
    return int(number)


__all__ = ["ProgressCallback", "as_count", "as_number", "as_str_list", "as_text", "notify"]
