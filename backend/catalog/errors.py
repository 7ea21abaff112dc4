"""Exception taxonomy for the catalog aggregation service."""
from __future__ import annotations

from typing import Any, Optional


class CatalogError(RuntimeError):
    """Base class for catalog service failures."""


class ConfigError(CatalogError):
    """Raised when configuration cannot be loaded."""


class MalformedInput(CatalogError, ValueError):
    """Raised when a raw record or category key cannot be parsed.

    The offending item is attached so callers can log it before skipping.
    """

    def __init__(self, message: str, item: Optional[Any] = None) -> None:
        super().__init__(message)
        self.item = item


class MalformedPathError(MalformedInput):
    """Raised when a category path key is not a well-formed path."""


class InvalidResponseShape(MalformedInput):
    """Raised when a shard payload is not one of the accepted containers."""


class UpstreamError(CatalogError):
    """Raised when the business listing data source cannot be reached."""


class ShardFailure(UpstreamError):
    """Raised when fetching one postal-code shard fails or times out."""

    def __init__(self, shard: str, reason: str) -> None:
        super().__init__(f"Shard {shard} failed: {reason}")
        self.shard = shard
        self.reason = reason


__all__ = [
    "CatalogError",
    "ConfigError",
    "MalformedInput",
    "MalformedPathError",
    "InvalidResponseShape",
    "ShardFailure",
    "UpstreamError",
]
