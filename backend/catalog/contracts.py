"""Immutable data contracts for the catalog aggregation engine."""
from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, computed_field, field_validator

RawRecord = Dict[str, Any]
CategoryPath = Tuple[str, ...]

OTHER_CATEGORY = "Other"
OTHER_PATH: CategoryPath = (OTHER_CATEGORY,)


class _FrozenBaseModel(BaseModel):
    """Base model enforcing immutability after creation."""

    model_config = ConfigDict(frozen=True)


class Record(_FrozenBaseModel):
    """Normalized business observation keyed by a stable identity."""

    identity: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    category_paths: Tuple[CategoryPath, ...] = Field(default_factory=tuple)
    address: Optional[str] = None
    source_url: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("category_paths")
    @classmethod
    def _canonical_path_order(cls, value: Tuple[CategoryPath, ...]) -> Tuple[CategoryPath, ...]:
        """Store paths as a sorted, duplicate-free tuple.

        Args:
            value: Candidate category paths.

        Returns:
            Tuple[CategoryPath, ...]: Paths in canonical order.

        Raises:
            ValueError: If a path is empty.
        """
        unique = {tuple(path) for path in value}
        if any(not path for path in unique):
            raise ValueError("category paths must contain at least one segment")
        return tuple(sorted(unique))

    @property
    def tree_paths(self) -> Tuple[CategoryPath, ...]:
        """Paths used for tree building; uncategorized records fall back to ``Other``."""

        if not self.category_paths:
            return (OTHER_PATH,)
        return self.category_paths

    @property
    def is_categorized(self) -> bool:
        """Return whether the upstream supplied any category for the record."""

        return bool(self.category_paths)


class Rejected(_FrozenBaseModel):
    """Outcome for a raw record that cannot be turned into a :class:`Record`."""

    reason: str = Field(..., min_length=1)
    source_key: Optional[str] = None


class CategoryNode(_FrozenBaseModel):
    """Category tree node with a deduplicated membership set."""

    label: str = Field(..., min_length=1)
    path: CategoryPath
    children: Tuple["CategoryNode", ...] = Field(default_factory=tuple)
    member_identities: FrozenSet[str] = Field(default_factory=frozenset)

    @field_validator("path")
    @classmethod
    def _ensure_path_ends_with_label(cls, value: CategoryPath, info: ValidationInfo) -> CategoryPath:
        """Validate that the node path terminates with the node label."""

        label = info.data.get("label")
        if not value or value[-1] != label:
            raise ValueError("node path must end with the node label")
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def count(self) -> int:
        """Number of distinct businesses reachable beneath the node."""

        return len(self.member_identities)

    @property
    def level(self) -> int:
        """Zero-based depth of the node."""

        return len(self.path) - 1

    def child(self, label: str) -> Optional["CategoryNode"]:
        """Return the direct child with ``label`` if present."""

        for candidate in self.children:
            if candidate.label == label:
                return candidate
        return None

    def walk(self) -> List["CategoryNode"]:
        """Return this node and every descendant in depth-first order."""

        nodes = [self]
        for candidate in self.children:
            nodes.extend(candidate.walk())
        return nodes


class ShardResult(_FrozenBaseModel):
    """Raw payload from one postal-code fetch: records on success, a reason on failure."""

    shard: str = Field(..., min_length=1)
    records: Tuple[RawRecord, ...] = Field(default_factory=tuple)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Return whether the fetch succeeded."""

        return self.error is None

    @classmethod
    def success(cls, shard: str, records: List[RawRecord]) -> "ShardResult":
        """Build a successful shard result."""

        return cls(shard=shard, records=tuple(records))

    @classmethod
    def failure(cls, shard: str, reason: str) -> "ShardResult":
        """Build a failed shard result."""

        return cls(shard=shard, error=reason or "unknown failure")


class AggregationResult(_FrozenBaseModel):
    """Deduplicated records plus the category forest derived from them."""

    records: Tuple[Record, ...] = Field(default_factory=tuple)
    categories: Tuple[CategoryNode, ...] = Field(default_factory=tuple)
    total_shards: int = Field(0, ge=0)
    failed_shards: int = Field(0, ge=0)
    rejected: int = Field(0, ge=0)

    @property
    def empty(self) -> bool:
        """Return whether no business survived aggregation."""

        return not self.records

    @property
    def all_shards_failed(self) -> bool:
        """Return whether every requested shard failed."""

        return self.total_shards > 0 and self.failed_shards == self.total_shards


class ZipCity(_FrozenBaseModel):
    """Entry of the postal-code-to-city lookup table."""

    zipcode: str = Field(..., min_length=1)
    city: str = ""


CategoryNode.model_rebuild()


__all__ = [
    "AggregationResult",
    "CategoryNode",
    "CategoryPath",
    "OTHER_CATEGORY",
    "OTHER_PATH",
    "RawRecord",
    "Record",
    "Rejected",
    "ShardResult",
    "ZipCity",
]
