"""HTTP client for the business listing data source."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from backend.catalog.config import UpstreamConfig
from backend.catalog.contracts import ShardResult, ZipCity
from backend.catalog.errors import InvalidResponseShape, ShardFailure, UpstreamError
from backend.catalog.search import parse_zip_cities
from backend.catalog.shards import parse_shard_payload

LOGGER = logging.getLogger(__name__)

SHARD_ENDPOINT = "/bizlist"
ZIP_CITIES_ENDPOINT = "/zipcities"


class UpstreamClient:
    """Fetch postal-code shards and the postal-code table over HTTP."""

    def __init__(
        self,
        settings: UpstreamConfig,
        *,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
        )
        self._retry_statuses = set(settings.retry_statuses)
        self._sleep = sleep

    def close(self) -> None:
        """Close underlying HTTP resources if this instance owns them."""

        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "UpstreamClient":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()

    def fetch_shard(self, zipcode: str) -> ShardResult:
        """Fetch one postal-code shard.

        Transport errors, error statuses and malformed payloads are reported
        as a failed :class:`ShardResult`; this method does not raise for them.
        """
        try:
            payload = self._get_json(SHARD_ENDPOINT, {"zipcode": zipcode}, label=zipcode)
            return parse_shard_payload(zipcode, payload)
        except ShardFailure as exc:
            LOGGER.warning("Shard %s fetch failed: %s", zipcode, exc.reason)
            return ShardResult.failure(zipcode, exc.reason)
        except InvalidResponseShape as exc:
            LOGGER.warning("Shard %s returned an invalid payload: %s", zipcode, exc)
            return ShardResult.failure(zipcode, "invalid response shape")

    def fetch_zip_cities(self) -> List[ZipCity]:
        """Fetch the postal-code-to-city table.

        Raises:
            UpstreamError: If the table cannot be fetched or parsed.
        """
        try:
            payload = self._get_json(ZIP_CITIES_ENDPOINT, None, label="zipcities")
            return parse_zip_cities(payload)
        except ShardFailure as exc:
            raise UpstreamError(f"Postal-code table unavailable: {exc.reason}") from exc
        except InvalidResponseShape as exc:
            raise UpstreamError(f"Postal-code table malformed: {exc}") from exc

    def _get_json(self, path: str, params: Optional[Dict[str, str]], *, label: str) -> Any:
        """Issue a GET request with retries and return the decoded JSON body.

        Raises:
            ShardFailure: When the request ultimately fails.
        """
        attempt = 0
        delay = self._settings.backoff_initial_seconds
        while True:
            try:
                response = self._client.get(path, params=params)
            except httpx.TimeoutException as exc:
                if attempt >= self._settings.max_retries:
                    raise ShardFailure(label, "timeout") from exc
                reason = "timeout"
            except httpx.HTTPError as exc:
                raise ShardFailure(label, f"transport error: {exc}") from exc
            else:
                if response.is_success:
                    try:
                        return response.json()
                    except ValueError as exc:
                        raise ShardFailure(label, "response body is not JSON") from exc
                if not self._should_retry(response.status_code, attempt):
                    raise ShardFailure(label, f"HTTP {response.status_code}")
                reason = f"HTTP {response.status_code}"

            attempt += 1
            LOGGER.info(
                "Retrying %s for %s after %s (attempt %d/%d)",
                path,
                label,
                reason,
                attempt,
                self._settings.max_retries,
            )
            self._sleep(min(delay, self._settings.backoff_max_seconds))
            delay = min(delay * 2, self._settings.backoff_max_seconds)

    def _should_retry(self, status_code: int, attempt: int) -> bool:
        """Return whether the request should be retried."""

        if status_code not in self._retry_statuses:
            return False
        return attempt < self._settings.max_retries


__all__ = ["SHARD_ENDPOINT", "UpstreamClient", "ZIP_CITIES_ENDPOINT"]
