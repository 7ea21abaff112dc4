"""Category tree construction with deduplicated per-node membership."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from backend.catalog.contracts import OTHER_PATH, CategoryNode, CategoryPath, Record
from backend.catalog.paths import is_prefix, titlecase

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _NodeBuilder:
    """Internal mutable node used while the tree is assembled."""

    label: str
    path: CategoryPath
    direct: Set[str] = field(default_factory=set)
    children: Dict[str, "_NodeBuilder"] = field(default_factory=dict)

    def ensure_child(self, label: str) -> "_NodeBuilder":
        """Return the child for ``label``, creating it when missing."""

        node = self.children.get(label)
        if node is None:
            node = _NodeBuilder(label=label, path=self.path + (label,))
            self.children[label] = node
        return node

    def freeze(self) -> CategoryNode:
        """Convert into an immutable node whose members include all descendants."""

        frozen_children = tuple(self.children[label].freeze() for label in sorted(self.children))
        members = set(self.direct)
        for child in frozen_children:
            members.update(child.member_identities)
        return CategoryNode(
            label=self.label,
            path=self.path,
            children=frozen_children,
            member_identities=frozenset(members),
        )


def _collect_prefix_members(records: Iterable[Record]) -> Dict[CategoryPath, Set[str]]:
    """Map every path prefix to the identities filed at or below it."""

    members: Dict[CategoryPath, Set[str]] = {}
    for record in records:
        for raw_path in record.tree_paths:
            path = tuple(titlecase(segment) for segment in raw_path)
            if path == OTHER_PATH:
                continue
            for length in range(1, len(path) + 1):
                members.setdefault(path[:length], set()).add(record.identity)
    return members


def build_category_tree(records: Sequence[Record]) -> List[CategoryNode]:
    """Build the sorted forest of top-level categories.

    Every node counts each business once, even when the business reaches the
    node through several sibling paths. Records whose only path is ``Other``
    contribute no node.

    Args:
        records: Normalized, deduplicated records.

    Returns:
        List[CategoryNode]: Top-level categories sorted by label.
    """
    root = _NodeBuilder(label="", path=())
    prefix_members = _collect_prefix_members(records)
    for prefix, identities in prefix_members.items():
        node = root
        for label in prefix:
            node = node.ensure_child(label)
        node.direct = set(identities)
    forest = [root.children[label].freeze() for label in sorted(root.children)]
    LOGGER.debug("Built category tree with %d nodes from %d records", len(prefix_members), len(records))
    return forest


def find_node(forest: Sequence[CategoryNode], path: Sequence[str]) -> Optional[CategoryNode]:
    """Return the node at ``path`` in the forest, if present."""

    level: Sequence[CategoryNode] = forest
    current: Optional[CategoryNode] = None
    for label in path:
        current = next((node for node in level if node.label == titlecase(label)), None)
        if current is None:
            return None
        level = current.children
    return current


def filter_by_path(records: Iterable[Record], path: Sequence[str]) -> List[Record]:
    """Return records filed at or below ``path``.

    A record matches when any of its category paths equals or starts with the
    selected path segment-wise, ignoring case. An empty path selects every
    record.
    """
    selected = [segment.strip() for segment in path]
    if not selected:
        return list(records)
    return [
        record
        for record in records
        if any(is_prefix(selected, candidate) for candidate in record.category_paths)
    ]


__all__ = ["build_category_tree", "filter_by_path", "find_node"]
