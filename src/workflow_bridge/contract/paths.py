"""
workflow-bridge — path resolver over untrusted JSON

File: src/workflow_bridge/contract/paths.py

Purpose
- Resolve dotted/indexed paths (``a.b.0.c``) against nested JSON values.
- Support ``|``-separated fallback candidates, first resolving candidate wins.
- Mirror allow-listed scalar leaves of an event payload into a fresh object.

Functional requirements
- Only scalar terminal values resolve. Reaching an object or array at the end
  of a path is a miss, so nested untrusted structures never leak through.
- A miss is ``UNRESOLVED``, which is distinct from JSON ``null`` (``None``).
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Final, TypeAlias

from workflow_bridge.contract.schema import JSONScalar, JSONValue, is_scalar

_FALLBACK_SEPARATOR: Final[str] = "|"
_SEGMENT_SEPARATOR: Final[str] = "."
_INDEX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[0-9]+$")
_LIST_SEPARATOR: Final[re.Pattern[str]] = re.compile(r"[\r\n,]")


class _Unresolved:
    """Marker for a path that did not reach a scalar."""

    __slots__ = ()

    _instance: _Unresolved | None = None

    def __new__(cls) -> _Unresolved:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED: Final[_Unresolved] = _Unresolved()
Resolution: TypeAlias = JSONScalar | _Unresolved


def split_path(path: str) -> list[str]:
    """Split a simple path into trimmed, non-empty segments."""

    return [segment.strip() for segment in path.split(_SEGMENT_SEPARATOR) if segment.strip()]


def resolve_path(value: object, path: str) -> Resolution:
    """Resolve a simple (non-fallback) path against ``value``."""

    current: object = value
    for segment in split_path(path):
        if current is None:
            return UNRESOLVED
        if isinstance(current, list):
            if _INDEX_PATTERN.fullmatch(segment) is None:
                return UNRESOLVED
            index = int(segment)
            if index >= len(current):
                return UNRESOLVED
            current = current[index]
        elif isinstance(current, Mapping):
            if segment not in current:
                return UNRESOLVED
            current = current[segment]
        else:
            return UNRESOLVED

    if not is_scalar(current):
        return UNRESOLVED
    return current  # type: ignore[return-value]


def get_by_path(value: object, path: str) -> Resolution:
    """Resolve ``path`` with fallback support.

    ``a.b|c.d`` tries ``a.b`` then ``c.d``. Candidates are not re-split.
    """

    if _FALLBACK_SEPARATOR not in path:
        return resolve_path(value, path)

    for candidate in _fallback_candidates(path):
        resolved = resolve_path(value, candidate)
        if resolved is not UNRESOLVED:
            return resolved
    return UNRESOLVED


def pick_by_paths(value: object, paths: Iterable[str]) -> dict[str, JSONValue]:
    """Copy the scalar leaves at ``paths`` into a new object at the same locations.

    Unresolved paths are skipped silently.
    """

    picked: dict[str, JSONValue] = {}
    for path in paths:
        segments = split_path(path)
        if not segments:
            continue
        resolved = resolve_path(value, path)
        if resolved is UNRESOLVED:
            continue
        _assign(picked, segments, resolved)
    return picked


def parse_path_list(text: str) -> list[str]:
    """Split newline- or comma-separated tokens, dropping blanks."""

    return [token.strip() for token in _LIST_SEPARATOR.split(text) if token.strip()]


def _fallback_candidates(path: str) -> list[str]:
    return [
        candidate.strip()
        for candidate in path.split(_FALLBACK_SEPARATOR)
        if candidate.strip()
    ]


def _assign(target: dict[str, JSONValue], segments: Sequence[str], leaf: JSONScalar) -> None:
    cursor = target
    for segment in segments[:-1]:
        child = cursor.get(segment)
        if not isinstance(child, dict):
            child = {}
            cursor[segment] = child
        cursor = child
    cursor[segments[-1]] = leaf


__all__ = [
    "UNRESOLVED",
    "Resolution",
    "get_by_path",
    "parse_path_list",
    "pick_by_paths",
    "resolve_path",
    "split_path",
]
