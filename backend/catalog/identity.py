"""Stable identity keys for raw business records."""
from __future__ import annotations

from typing import Any, Mapping, Optional

URL_FIELDS = ("yelpUrl", "url", "source_url")
NO_ADDRESS = "no-address"
IDENTITY_SEPARATOR = "|"


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def source_url(raw: Mapping[str, Any]) -> Optional[str]:
    """Return the canonical source URL carried by the record, if any."""

    for field_name in URL_FIELDS:
        url = _clean(raw.get(field_name))
        if url:
            return url
    return None


def resolve_identity(raw: Mapping[str, Any]) -> Optional[str]:
    """Compute the deduplication key for a raw record.

    The canonical source URL wins when present. Otherwise the key is
    ``name|address`` with ``no-address`` standing in for a missing address.
    URLs are already canonical upstream, so the key is case-sensitive.

    Args:
        raw: Raw record payload; ``name`` should already be decoded.

    Returns:
        Optional[str]: Identity key, or ``None`` when neither a URL nor a
            non-empty name is available.
    """
    url = source_url(raw)
    if url:
        return url
    name = _clean(raw.get("name"))
    if not name:
        return None
    address = _clean(raw.get("address")) or NO_ADDRESS
    return f"{name}{IDENTITY_SEPARATOR}{address}"


__all__ = ["NO_ADDRESS", "URL_FIELDS", "resolve_identity", "source_url"]
