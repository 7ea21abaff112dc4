"""Folding of duplicate business observations into one record per identity."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from backend.catalog.contracts import Record

LOGGER = logging.getLogger(__name__)


def _merge_pair(first: Record, later: Record) -> Record:
    """Union category paths; every other field keeps the first-seen value."""

    if set(later.category_paths) <= set(first.category_paths):
        return first
    union = set(first.category_paths) | set(later.category_paths)
    return first.model_copy(update={"category_paths": tuple(sorted(union))})


def sort_key(record: Record) -> tuple:
    """Stable ordering: case-insensitive name, then identity."""

    return (record.name.casefold(), record.name, record.identity)


def dedupe(records: Iterable[Record]) -> List[Record]:
    """Fold records sharing an identity into one.

    Category paths are unioned across every observation of the identity and
    all other attributes are taken from the first observation. The result is
    sorted by decoded name so repeated runs over the same input agree, and
    ``dedupe(dedupe(records)) == dedupe(records)``.

    Args:
        records: Normalized records, possibly with repeated identities.

    Returns:
        List[Record]: One record per identity.
    """
    merged: Dict[str, Record] = {}
    seen = 0
    for record in records:
        seen += 1
        existing = merged.get(record.identity)
        if existing is None:
            merged[record.identity] = record
            continue
        merged[record.identity] = _merge_pair(existing, record)
    if seen != len(merged):
        LOGGER.debug("Folded %d observations into %d records", seen, len(merged))
    return sorted(merged.values(), key=sort_key)


__all__ = ["dedupe", "sort_key"]
