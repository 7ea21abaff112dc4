"""Cleaning and validation of individual raw business records."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import unquote_plus

from backend.catalog.config import NormalizationConfig
from backend.catalog.contracts import CategoryPath, Record, Rejected
from backend.catalog.errors import MalformedInput
from backend.catalog.identity import URL_FIELDS, resolve_identity, source_url
from backend.catalog.paths import canonical_path

LOGGER = logging.getLogger(__name__)

_HTML_ENTITIES: Dict[str, str] = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&apos;": "'",
    "&#x27;": "'",
    "&#34;": '"',
}
_ENTITY_PATTERN = re.compile("|".join(re.escape(entity) for entity in _HTML_ENTITIES), re.IGNORECASE)

_RESERVED_FIELDS = frozenset({"name", "address", "categories", *URL_FIELDS})

NormalizationOutcome = Union[Record, Rejected]


def decode_text(text: str) -> str:
    """Decode a percent-encoded, HTML-escaped business name.

    Percent-decoding (``+`` as space) runs first, then the fixed entity set is
    replaced in a single pass so ``&amp;lt;`` becomes ``&lt;`` rather than
    ``<``. A step that fails leaves its input unchanged.
    """
    decoded = text
    try:
        decoded = unquote_plus(decoded, errors="strict")
    except UnicodeDecodeError:
        LOGGER.debug("Percent-decoding failed; keeping original text: %r", text)
    return _ENTITY_PATTERN.sub(lambda match: _HTML_ENTITIES[match.group(0).lower()], decoded)


class RecordNormalizer:
    """Turn raw upstream payloads into validated :class:`Record` values."""

    def __init__(self, settings: Optional[NormalizationConfig] = None) -> None:
        self._settings = settings or NormalizationConfig()

    def normalize(self, raw: Any, *, source_key: Optional[str] = None) -> NormalizationOutcome:
        """Normalize a single raw record.

        Args:
            raw: Raw record payload as received from a shard.
            source_key: Key the record was filed under upstream, for reporting.

        Returns:
            NormalizationOutcome: The normalized record, or a rejection.
        """
        if not isinstance(raw, Mapping):
            LOGGER.warning("Skipping malformed record %s: expected mapping, got %s", source_key, type(raw).__name__)
            return Rejected(reason="malformed", source_key=source_key)

        raw_name = raw.get("name")
        name = decode_text(raw_name).strip() if isinstance(raw_name, str) else ""
        identity = resolve_identity({**raw, "name": name})
        if identity is None:
            return Rejected(reason="no-identity", source_key=source_key)
        if not name:
            return Rejected(reason="empty-name", source_key=source_key)
        if self._settings.is_placeholder(name):
            return Rejected(reason="unknown-name", source_key=source_key)

        address = raw.get("address")
        return Record(
            identity=identity,
            name=name,
            category_paths=self._normalize_paths(raw.get("categories"), identity),
            address=(address.strip() or None) if isinstance(address, str) else None,
            source_url=source_url(raw),
            attributes={key: value for key, value in raw.items() if key not in _RESERVED_FIELDS},
        )

    def normalize_many(self, raws: List[Any]) -> Tuple[List[Record], List[Rejected]]:
        """Normalize a batch, splitting accepted records from rejections."""

        records: List[Record] = []
        rejected: List[Rejected] = []
        for raw in raws:
            outcome = self.normalize(raw, source_key=_source_key(raw))
            if isinstance(outcome, Rejected):
                rejected.append(outcome)
            else:
                records.append(outcome)
        if rejected:
            LOGGER.info("Rejected %d of %d raw records", len(rejected), len(raws))
        return records, rejected

    def _normalize_paths(self, raw_paths: Any, identity: str) -> Tuple[CategoryPath, ...]:
        if raw_paths is None:
            return ()
        if not isinstance(raw_paths, (list, tuple)):
            LOGGER.warning("Ignoring categories for %s: expected a list, got %s", identity, type(raw_paths).__name__)
            return ()
        paths: List[CategoryPath] = []
        for raw_path in raw_paths:
            try:
                paths.append(canonical_path(raw_path))
            except MalformedInput as exc:
                LOGGER.warning("Skipping malformed category path for %s: %s (%r)", identity, exc, exc.item)
        return tuple(paths)


def _source_key(raw: Any) -> Optional[str]:
    if isinstance(raw, Mapping):
        return source_url(raw)
    return None


def normalize_record(
    raw: Any,
    *,
    source_key: Optional[str] = None,
    settings: Optional[NormalizationConfig] = None,
) -> NormalizationOutcome:
    """Normalize one raw record with the given settings."""

    return RecordNormalizer(settings).normalize(raw, source_key=source_key)


__all__ = ["NormalizationOutcome", "RecordNormalizer", "decode_text", "normalize_record"]
