"""A small JSONPath subset for reading values out of parsed responses.

Supported syntax:

- dot notation: ``data.user.id``
- array indices: ``items[0]``
- quoted bracket keys, with ``\\'``, ``\\"``, ``\\\\``, ``\\n``, ``\\t``, ``\\r`` escapes:
  ``meta['key.with.dots']``
- an optional ``$`` root: ``$.items[0].id``

Lookups never raise. A miss returns :data:`MISSING`, which is distinct from a
JSON ``null`` stored at the path.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union


class _Missing:
    """Sentinel type for a path that does not resolve."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

_PROPERTY_RE = re.compile(r"[A-Za-z0-9_$\-]+")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}
_WHITESPACE = " \t\n\r"


@dataclass(frozen=True)
class PathSegment:
    """One step of a parsed path: an object key or an array index."""
    value: Union[str, int]
    quoted: bool = False

    @property
    def is_index(self) -> bool:
        return isinstance(self.value, int)


class PathSyntaxError(ValueError):
    """Raised by :func:`parse_path` for malformed expressions."""


def parse_path(path: str) -> list[PathSegment]:
    """Split *path* into segments.

    Raises:
        PathSyntaxError: if the expression is empty or malformed.
    """
    if not path:
        raise PathSyntaxError("Empty path")

    segments: list[PathSegment] = []
    i = 0
    if path[0] == "$":
        i = 1
        if i < len(path) and path[i] == ".":
            i += 1

    while i < len(path):
        if path[i] == ".":
            i += 1
            if i >= len(path):
                raise PathSyntaxError("Unexpected end after dot")

        if path[i] == "[":
            segment, i = _parse_bracket(path, i)
        else:
            match = _PROPERTY_RE.match(path, i)
            if match is None:
                raise PathSyntaxError(
                    f"Invalid character at position {i}: {path[i]!r}"
                )
            segment = PathSegment(match.group(0))
            i = match.end()
        segments.append(segment)

    return segments


def _skip_whitespace(path: str, i: int) -> int:
    while i < len(path) and path[i] in _WHITESPACE:
        i += 1
    return i


def _parse_bracket(path: str, start: int) -> tuple[PathSegment, int]:
    i = _skip_whitespace(path, start + 1)
    if i >= len(path):
        raise PathSyntaxError("Unexpected end in bracket expression")

    if path[i] in ("'", '"'):
        quote = path[i]
        i += 1
        chars: list[str] = []
        while i < len(path) and path[i] != quote:
            if path[i] == "\\" and i + 1 < len(path):
                nxt = path[i + 1]
                if nxt in (quote, "\\"):
                    chars.append(nxt)
                    i += 2
                    continue
                if nxt in _ESCAPES:
                    chars.append(_ESCAPES[nxt])
                    i += 2
                    continue
            chars.append(path[i])
            i += 1
        if i >= len(path):
            raise PathSyntaxError("Unterminated string in bracket expression")
        i = _skip_whitespace(path, i + 1)
        if i >= len(path) or path[i] != "]":
            raise PathSyntaxError("Expected closing bracket")
        return PathSegment("".join(chars), quoted=True), i + 1

    digits_start = i
    while i < len(path) and path[i] in "0123456789":
        i += 1
    if i == digits_start:
        raise PathSyntaxError("Invalid bracket expression: expected string or number")
    index = int(path[digits_start:i])
    i = _skip_whitespace(path, i)
    if i >= len(path) or path[i] != "]":
        raise PathSyntaxError("Expected closing bracket after index")
    return PathSegment(index), i + 1


def get_value_by_segments(obj: Any, segments: list[PathSegment]) -> Any:
    """Walk *segments* through *obj*; return :data:`MISSING` on any miss."""
    current = obj
    for segment in segments:
        if segment.is_index:
            if not isinstance(current, list):
                return MISSING
            index = segment.value
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            if not isinstance(current, dict) or segment.value not in current:
                return MISSING
            current = current[segment.value]
    return current


def get_value_at_path(obj: Any, path: str) -> Any:
    """Resolve *path* against *obj*.

    >>> get_value_at_path({"items": [1, 2, 3]}, "items[1]")
    2
    >>> get_value_at_path({"a": 1}, "b")
    MISSING
    """
    if not path or not isinstance(obj, (dict, list)):
        return MISSING
    try:
        segments = parse_path(path)
    except PathSyntaxError:
        return MISSING
    return get_value_by_segments(obj, segments)


def is_valid_path(path: str) -> bool:
    """True if *path* parses."""
    try:
        parse_path(path)
    except PathSyntaxError:
        return False
    return True


def looks_like_json_path(value: str) -> bool:
    """Heuristic used by the ledger: rooted, dotted, or bracketed names."""
    return value.startswith("$") or "." in value or "[" in value


def normalize_path(path: str) -> str:
    """Rewrite *path* in a canonical notation, or return it unchanged if invalid."""
    try:
        segments = parse_path(path)
    except PathSyntaxError:
        return path

    parts: list[str] = []
    for segment in segments:
        if segment.is_index:
            parts.append(f"[{segment.value}]")
        elif _needs_brackets(segment.value):
            escaped = segment.value.replace("\\", "\\\\").replace("'", "\\'")
            parts.append(f"['{escaped}']")
        else:
            parts.append(f".{segment.value}")
    return "".join(parts).lstrip(".")


def _needs_brackets(name: str) -> bool:
    if not name or name[0] in "0123456789":
        return True
    return _PROPERTY_RE.fullmatch(name) is None
