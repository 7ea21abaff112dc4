"""Bounded concurrent fan-out of postal-code shard fetches."""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Sequence

from backend.catalog.config import UpstreamConfig
from backend.catalog.contracts import ShardResult

from .client import UpstreamClient

LOGGER = logging.getLogger(__name__)

ShardFetch = Callable[[str], ShardResult]

DEFAULT_MAX_CONCURRENT_SHARDS = 5


class ShardFetcher:
    """Fork-join executor that settles every shard as a result or a failure.

    One worker pool is shared by every search made through this fetcher, so
    at most ``max_workers`` upstream calls are in flight at any time. A call
    abandoned at the search deadline keeps its worker until it returns.
    """

    def __init__(
        self,
        fetch: ShardFetch,
        *,
        max_workers: int = DEFAULT_MAX_CONCURRENT_SHARDS,
        timeout_seconds: float = 30.0,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._fetch = fetch
        self._max_workers = max_workers
        self._timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="shard-fetch")

    @classmethod
    def from_client(cls, client: UpstreamClient, settings: UpstreamConfig) -> "ShardFetcher":
        """Build a fetcher over an :class:`UpstreamClient`."""

        return cls(
            client.fetch_shard,
            max_workers=settings.max_concurrent_shards,
            timeout_seconds=settings.search_timeout_seconds,
        )

    def close(self) -> None:
        """Stop accepting work and drop queued fetches."""

        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "ShardFetcher":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()

    def fetch_all(self, zipcodes: Sequence[str]) -> List[ShardResult]:
        """Fetch every shard concurrently and wait for all of them to settle.

        At most ``max_workers`` fetches run at once. Shards still pending when
        the overall deadline passes are reported as ``timeout`` failures.

        Args:
            zipcodes: Postal codes to fetch; blanks and repeats are dropped.

        Returns:
            List[ShardResult]: One result per unique postal code, in input order.
        """
        unique = list(dict.fromkeys(code.strip() for code in zipcodes if code and code.strip()))
        if not unique:
            return []

        futures: Dict[str, Future[ShardResult]] = {
            code: self._executor.submit(self._fetch_one, code) for code in unique
        }
        wait(futures.values(), timeout=self._timeout_seconds)
        results: List[ShardResult] = []
        for code, future in futures.items():
            if not future.done():
                future.cancel()
                LOGGER.warning("Shard %s did not settle within %.1fs", code, self._timeout_seconds)
                results.append(ShardResult.failure(code, "timeout"))
            else:
                results.append(future.result())

        failed = sum(1 for result in results if not result.ok)
        LOGGER.info("Fetched %d shards (%d failed)", len(results), failed)
        return results

    def _fetch_one(self, zipcode: str) -> ShardResult:
        try:
            return self._fetch(zipcode)
        except Exception as exc:  # noqa: BLE001 - a failing shard must not abort the search
            LOGGER.exception("Unexpected error while fetching shard %s", zipcode)
            return ShardResult.failure(zipcode, f"unexpected error: {exc}")


__all__ = ["DEFAULT_MAX_CONCURRENT_SHARDS", "ShardFetch", "ShardFetcher"]
