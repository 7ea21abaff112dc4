"""Resolution of a free-text search query into postal-code shards."""
from __future__ import annotations

import logging
import re
from typing import Any, List, Mapping, Sequence

from backend.catalog.contracts import ZipCity
from backend.catalog.errors import InvalidResponseShape

LOGGER = logging.getLogger(__name__)

POSTAL_CODE_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")


def is_postal_code(query: str) -> bool:
    """Return whether the query is a US ZIP or ZIP+4 code."""

    return bool(POSTAL_CODE_PATTERN.match(query.strip()))


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_zip_cities(payload: Any) -> List[ZipCity]:
    """Parse the postal-code table returned by the data source.

    The table is a list of ``{"zipcode": ..., "city": ...}`` entries; the
    legacy ``{zipcode: city}`` mapping is also accepted.

    Raises:
        InvalidResponseShape: If the payload is neither shape.
    """
    if isinstance(payload, Mapping):
        entries = [{"zipcode": key, "city": value} for key, value in payload.items()]
    elif isinstance(payload, list):
        entries = payload
    else:
        raise InvalidResponseShape(
            f"Postal-code table must be a list or an object, got {type(payload).__name__}",
            item=payload,
        )

    table: List[ZipCity] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            LOGGER.warning("Skipping malformed postal-code entry: %r", entry)
            continue
        zipcode = _as_text(entry.get("zipcode"))
        if not zipcode:
            LOGGER.warning("Skipping postal-code entry without a code: %r", entry)
            continue
        table.append(ZipCity(zipcode=zipcode, city=_as_text(entry.get("city"))))
    return table


def resolve_postal_codes(query: str, table: Sequence[ZipCity]) -> List[str]:
    """Return the shards to fetch for a search query.

    A postal code is its own single shard. Any other query selects every
    postal code whose city contains the query, ignoring case, in table order
    and without repeats.
    """
    cleaned = query.strip()
    if not cleaned:
        return []
    if is_postal_code(cleaned):
        return [cleaned]
    needle = cleaned.casefold()
    codes: List[str] = []
    for entry in table:
        if entry.city and needle in entry.city.casefold() and entry.zipcode not in codes:
            codes.append(entry.zipcode)
    LOGGER.debug("Query %r matched %d postal codes", cleaned, len(codes))
    return codes


__all__ = ["POSTAL_CODE_PATTERN", "is_postal_code", "parse_zip_cities", "resolve_postal_codes"]
