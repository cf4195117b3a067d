"""Best-effort recovery of a JSON value from noisy tool output."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_PAIRS = {"[": "]", "{": "}"}


def extract_json(text: str | None) -> Any | None:
    """Return the first JSON array or object embedded in ``text``.

    Returns ``None`` when nothing parseable is found; never raises.
    """
    if not text:
        return None
    stripped = str(text).strip()
    if not stripped:
        return None

    fenced = _FENCE_RE.search(stripped)
    if fenced:
        inner = fenced.group(1).strip()
        if inner.startswith(("[", "{")):
            parsed = _loads(inner)
            if parsed is not None:
                return parsed

    candidate = _first_balanced_span(stripped)
    if candidate is None:
        return None
    return _loads(candidate)


def extract_object(text: str | None) -> Optional[Dict[str, Any]]:
    """Return the first JSON object in ``text``.

    Unlike :func:`extract_json`, an array (or bracketed prose) appearing before
    the object does not hide it: top-level ``[...]`` spans are skipped.
    """
    value = extract_json(text)
    if isinstance(value, dict):
        return value
    if not text:
        return None
    return _first_object(str(text))


def extract_array(text: str | None) -> Optional[List[Any]]:
    """Return the extracted value only when it is a JSON array."""
    value = extract_json(text)
    return value if isinstance(value, list) else None


def _first_balanced_span(text: str) -> Optional[str]:
    array_start = text.find("[")
    object_start = text.find("{")
    starts = [index for index in (array_start, object_start) if index != -1]
    starts.sort()
    for start in starts:
        span = _balanced_span(text, start)
        if span is not None:
            return span
    return None


def _first_object(text: str) -> Optional[Dict[str, Any]]:
    index = 0
    while True:
        object_start = text.find("{", index)
        if object_start == -1:
            return None
        array_start = text.find("[", index)
        if array_start != -1 and array_start < object_start:
            span = _balanced_span(text, array_start)
            index = array_start + (len(span) if span is not None else 1)
            continue
        span = _balanced_span(text, object_start)
        if span is not None:
            parsed = _loads(span)
            if isinstance(parsed, dict):
                return parsed
        index = object_start + 1


def _balanced_span(text: str, start: int) -> Optional[str]:
    open_char = text[start]
    close_char = _PAIRS[open_char]
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def _loads(candidate: str) -> Any | None:
    try:
        value = json.loads(candidate)
    except (TypeError, ValueError):
        return None
    if isinstance(value, (dict, list)):
        return value
    return None


__all__ = ["extract_array", "extract_json", "extract_object"]
