"""Adapters for the business listing data source."""

from .client import SHARD_ENDPOINT, ZIP_CITIES_ENDPOINT, UpstreamClient
from .fetcher import DEFAULT_MAX_CONCURRENT_SHARDS, ShardFetcher

__all__ = [
    "DEFAULT_MAX_CONCURRENT_SHARDS",
    "SHARD_ENDPOINT",
    "ShardFetcher",
    "UpstreamClient",
    "ZIP_CITIES_ENDPOINT",
]
