"""Conversion between flat category keys and segment lists."""
from __future__ import annotations

from typing import Any, Iterable, List, Sequence

from backend.catalog.contracts import CategoryPath
from backend.catalog.errors import MalformedPathError

PATH_SEPARATOR = " > "


def segments(raw: str) -> List[str]:
    """Split a flat category key such as ``"Shopping > Fashion"`` into segments.

    Segments are returned verbatim so that ``segments(display(p)) == p``.

    Args:
        raw: Flat category key joined with ``" > "``.

    Returns:
        List[str]: Ordered path segments.

    Raises:
        MalformedPathError: If the key is not a string, is blank, or holds an
            empty segment.
    """
    if not isinstance(raw, str):
        raise MalformedPathError("category key must be a string", item=raw)
    if not raw.strip():
        raise MalformedPathError("category key is empty", item=raw)
    parts = raw.split(PATH_SEPARATOR)
    if any(not part for part in parts):
        raise MalformedPathError("category key contains an empty segment", item=raw)
    return parts


def display(path: Sequence[str]) -> str:
    """Join path segments into the canonical flat key.

    Raises:
        MalformedPathError: If the path is empty.
    """
    if not path:
        raise MalformedPathError("cannot display an empty path", item=path)
    return PATH_SEPARATOR.join(path)


def titlecase(segment: str) -> str:
    """Upper-case the first character and leave the rest untouched."""

    if not segment:
        return segment
    return segment[0].upper() + segment[1:]


def canonical_path(raw: Any) -> CategoryPath:
    """Return the canonical segment tuple for one raw category path.

    Lists of segments are the canonical upstream shape; flat string keys are
    the legacy shape and are split with :func:`segments`. A list segment that
    itself contains the separator is split the same way, so every returned
    path survives ``segments(display(path))``.

    Raises:
        MalformedPathError: If the path cannot be interpreted.
    """
    if isinstance(raw, str):
        parts: Iterable[Any] = segments(raw)
    elif isinstance(raw, (list, tuple)):
        parts = raw
    else:
        raise MalformedPathError("category path must be a list of segments", item=raw)

    normalized: List[str] = []
    for part in parts:
        if not isinstance(part, str):
            raise MalformedPathError("category segment must be a string", item=raw)
        for piece in segments(part) if PATH_SEPARATOR in part else [part]:
            cleaned = piece.strip()
            if not cleaned:
                raise MalformedPathError("category path contains an empty segment", item=raw)
            normalized.append(titlecase(cleaned))
    if not normalized:
        raise MalformedPathError("category path is empty", item=raw)
    return tuple(normalized)


def is_prefix(prefix: Sequence[str], path: Sequence[str]) -> bool:
    """Return whether ``prefix`` leads ``path`` segment-wise, ignoring case."""

    if len(prefix) > len(path):
        return False
    return all(left.casefold() == right.casefold() for left, right in zip(prefix, path))


__all__ = ["PATH_SEPARATOR", "canonical_path", "display", "is_prefix", "segments", "titlecase"]
