"""Search service tying the shard fetcher to the aggregation pipeline."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from backend.catalog.config import AppConfig, load_config
from backend.catalog.contracts import AggregationResult, Record, ZipCity
from backend.catalog.pipeline import AggregationPipeline
from backend.catalog.search import is_postal_code, resolve_postal_codes
from backend.catalog.tree import filter_by_path
from backend.catalog.upstream import ShardFetcher, UpstreamClient

LOGGER = logging.getLogger(__name__)


class CatalogService:
    """Resolve a query into shards, fetch them and aggregate the results."""

    def __init__(
        self,
        *,
        config: Optional[AppConfig] = None,
        client: Optional[UpstreamClient] = None,
        fetcher: Optional[ShardFetcher] = None,
        pipeline: Optional[AggregationPipeline] = None,
    ) -> None:
        self._config = config or load_config()
        self._owns_client = client is None
        self._client = client or UpstreamClient(self._config.upstream)
        self._owns_fetcher = fetcher is None
        self._fetcher = fetcher or ShardFetcher.from_client(self._client, self._config.upstream)
        self._pipeline = pipeline or AggregationPipeline(settings=self._config.normalization)

    def close(self) -> None:
        """Release the fetcher and upstream client this service created."""

        if self._owns_fetcher:
            self._fetcher.close()
        if self._owns_client:
            self._client.close()

    def zip_cities(self) -> List[ZipCity]:
        """Return the postal-code table from the data source."""

        return self._client.fetch_zip_cities()

    def postal_codes_for(self, query: str) -> List[str]:
        """Return the shards a query should fetch.

        Raises:
            UpstreamError: If a city query needs the postal-code table and it
                cannot be fetched.
        """
        cleaned = query.strip()
        if not cleaned:
            return []
        if is_postal_code(cleaned):
            return [cleaned]
        return resolve_postal_codes(cleaned, self.zip_cities())

    def search(self, query: str) -> AggregationResult:
        """Run a full search for a postal code or a city name."""

        zipcodes = self.postal_codes_for(query)
        if not zipcodes:
            LOGGER.info("Query %r matched no postal codes", query)
            return AggregationResult()
        return self._pipeline.run(self._fetcher.fetch_all(zipcodes))

    def filter(
        self,
        query: str,
        path: Sequence[str],
        *,
        result: Optional[AggregationResult] = None,
    ) -> List[Record]:
        """Keep the records filed at or below ``path``.

        Pass the ``result`` the category tree was built from to filter exactly
        those records. Without it the query is searched again, and shards that
        fail differently this time change what is returned.
        """
        if result is None:
            result = self.search(query)
        return filter_by_path(result.records, path)


__all__ = ["CatalogService"]
