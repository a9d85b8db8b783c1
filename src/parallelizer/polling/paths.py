"""Dot-separated field path lookup over decoded JSON payloads."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from parallelizer.errors import PathResolutionError

_MISSING = object()


def resolve_path(payload: Any, path: str) -> Any:
    """Return the value at ``path`` (e.g. ``"a.b.0.c"``), raising if any segment is missing.

    Mapping segments are looked up by key; list segments must be integer indexes.
    """

    current = payload
    for segment in path.split("."):
        current = _step(current, segment)
        if current is _MISSING:
            raise PathResolutionError(
                f"Cannot resolve path {path!r}: segment {segment!r} is missing",
                path=path,
                segment=segment,
            )
    return current


def lookup_path(payload: Any, path: str, default: Any = None) -> Any:
    """Lenient variant of :func:`resolve_path` returning ``default`` for missing paths."""

    try:
        return resolve_path(payload, path)
    except PathResolutionError:
        return default


def _step(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        value = current.get(segment, _MISSING)
    elif isinstance(current, Sequence) and not isinstance(current, str | bytes):
        # Only non-negative integer segments index into lists.
        if not segment.isdigit():
            return _MISSING
        try:
            value = current[int(segment)]
        except (ValueError, IndexError):
            return _MISSING
    else:
        return _MISSING
    return value
