"""Boundary validation and merging of per-postal-code shard payloads."""
from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Mapping, Sequence

from backend.catalog.contracts import RawRecord, ShardResult
from backend.catalog.errors import InvalidResponseShape
from backend.catalog.identity import source_url

LOGGER = logging.getLogger(__name__)

LEGACY_ENVELOPE_KEY = "businesses"


def _keyed_records(shard: str, payload: Mapping[str, Any]) -> List[RawRecord]:
    """Flatten the canonical ``source_key -> record`` mapping."""

    records: List[RawRecord] = []
    for source_key, raw in payload.items():
        if not isinstance(raw, Mapping):
            LOGGER.warning("Shard %s: skipping malformed record under %r", shard, source_key)
            continue
        record = dict(raw)
        if source_url(record) is None and isinstance(source_key, str) and source_key.strip():
            record["yelpUrl"] = source_key.strip()
        records.append(record)
    return records


def _listed_records(shard: str, payload: Sequence[Any]) -> List[RawRecord]:
    """Accept the legacy list shape where each record carries its own URL."""

    records: List[RawRecord] = []
    for index, raw in enumerate(payload):
        if not isinstance(raw, Mapping):
            LOGGER.warning("Shard %s: skipping malformed record at index %d", shard, index)
            continue
        records.append(dict(raw))
    return records


def parse_shard_payload(shard: str, payload: Any) -> ShardResult:
    """Validate one upstream response and return it as a successful shard result.

    The canonical payload maps a stable source key (the detail-page URL) to a
    record. The legacy payload is a list of records, or an envelope whose
    ``businesses`` member holds either such a list or a keyed mapping. Other
    envelope members (``categories`` and the like) are ignored.

    Args:
        shard: Postal code the payload was fetched for.
        payload: Decoded JSON body.

    Returns:
        ShardResult: Successful result holding the raw records.

    Raises:
        InvalidResponseShape: If the payload is neither accepted container.
    """
    if isinstance(payload, Mapping):
        if LEGACY_ENVELOPE_KEY not in payload:
            return ShardResult.success(shard, _keyed_records(shard, payload))
        envelope = payload[LEGACY_ENVELOPE_KEY]
        if isinstance(envelope, list):
            return ShardResult.success(shard, _listed_records(shard, envelope))
        if isinstance(envelope, Mapping):
            return ShardResult.success(shard, _keyed_records(shard, envelope))
        raise InvalidResponseShape(
            f"Shard {shard} {LEGACY_ENVELOPE_KEY!r} must be an object or a list, "
            f"got {type(envelope).__name__}",
            item=payload,
        )
    if isinstance(payload, list):
        return ShardResult.success(shard, _listed_records(shard, payload))
    raise InvalidResponseShape(
        f"Shard {shard} payload must be an object or a list, got {type(payload).__name__}",
        item=payload,
    )


def _shard_order(result: ShardResult) -> tuple:
    return (result.shard, json.dumps(list(result.records), sort_keys=True, default=str))


def merge_shards(results: Iterable[ShardResult]) -> List[RawRecord]:
    """Concatenate the raw records of every successful shard.

    Failed shards are skipped. Successful shards are ordered by postal code
    (then content) before concatenation, so the merged list is identical for
    every completion order.

    Args:
        results: Settled shard results in any order.

    Returns:
        List[RawRecord]: Raw records; empty when no shard succeeded.
    """
    successful = sorted((result for result in results if result.ok), key=_shard_order)
    merged: List[RawRecord] = []
    for result in successful:
        merged.extend(dict(record) for record in result.records)
    return merged


class ShardMerger:
    """Incremental merge target fed as each shard fetch settles."""

    def __init__(self) -> None:
        self._results: List[ShardResult] = []

    def add(self, result: ShardResult) -> None:
        """Record a settled shard result."""

        if not result.ok:
            LOGGER.warning("Shard %s failed: %s", result.shard, result.error)
        self._results.append(result)

    def extend(self, results: Iterable[ShardResult]) -> None:
        """Record several settled shard results."""

        for result in results:
            self.add(result)

    @property
    def total_count(self) -> int:
        """Number of shard results received so far."""

        return len(self._results)

    @property
    def failed_count(self) -> int:
        """Number of failed shard results received so far."""

        return sum(1 for result in self._results if not result.ok)

    @property
    def all_failed(self) -> bool:
        """Return whether at least one shard settled and none succeeded."""

        return bool(self._results) and self.failed_count == self.total_count

    def records(self) -> List[RawRecord]:
        """Return the merged raw records for every shard received so far."""

        return merge_shards(self._results)


__all__ = ["LEGACY_ENVELOPE_KEY", "ShardMerger", "merge_shards", "parse_shard_payload"]
