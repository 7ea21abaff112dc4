"""Composition of the aggregation stages into one pure pipeline."""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from backend.catalog.config import NormalizationConfig
from backend.catalog.contracts import AggregationResult, RawRecord, ShardResult
from backend.catalog.dedup import dedupe
from backend.catalog.normalization import RecordNormalizer
from backend.catalog.shards import ShardMerger
from backend.catalog.tree import build_category_tree

LOGGER = logging.getLogger(__name__)


class AggregationPipeline:
    """Merge shards, normalize, deduplicate and build the category tree.

    The pipeline performs no I/O and keeps no state between runs, so the same
    settled shard results always produce the same output.
    """

    def __init__(
        self,
        *,
        settings: Optional[NormalizationConfig] = None,
        normalizer: Optional[RecordNormalizer] = None,
    ) -> None:
        self._normalizer = normalizer or RecordNormalizer(settings)

    def run(self, results: Iterable[ShardResult]) -> AggregationResult:
        """Aggregate settled shard results.

        Args:
            results: One result per requested shard, successful or failed.

        Returns:
            AggregationResult: Deduplicated records, category forest and shard
                failure counts.
        """
        merger = ShardMerger()
        merger.extend(results)
        result = self.aggregate(merger.records())
        result = result.model_copy(
            update={"total_shards": merger.total_count, "failed_shards": merger.failed_count}
        )
        if merger.all_failed:
            LOGGER.warning("All %d shards failed; returning an empty result", merger.total_count)
        LOGGER.info(
            "Aggregated %d records into %d top-level categories (shards=%d failed=%d rejected=%d)",
            len(result.records),
            len(result.categories),
            result.total_shards,
            result.failed_shards,
            result.rejected,
        )
        return result

    def aggregate(self, raw_records: Sequence[RawRecord]) -> AggregationResult:
        """Aggregate an already merged list of raw records."""

        records, rejected = self._normalizer.normalize_many(list(raw_records))
        unique = dedupe(records)
        forest = build_category_tree(unique)
        return AggregationResult(
            records=tuple(unique),
            categories=tuple(forest),
            rejected=len(rejected),
        )


__all__ = ["AggregationPipeline"]
