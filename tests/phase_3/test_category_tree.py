"""Tests for category tree construction and path filtering."""
from __future__ import annotations

import itertools
from typing import Dict, List, Sequence

import pytest

from backend.catalog.contracts import CategoryNode, Record
from backend.catalog.normalization import normalize_record
from backend.catalog.paths import display, segments
from backend.catalog.tree import build_category_tree, filter_by_path, find_node


def _record(identity: str, *paths: Sequence[str]) -> Record:
    return Record(
        identity=identity,
        name=identity.upper(),
        category_paths=tuple(tuple(path) for path in paths),
    )


@pytest.fixture(name="records")
def fixture_records() -> List[Record]:
    return [
        _record("a", ["Shopping", "Fashion", "Shoes"]),
        _record("b", ["Shopping", "Fashion", "Shoes"], ["Shopping", "Fashion", "Bags"]),
        _record("c", ["Shopping", "Books"]),
        _record("d", ["Food", "Pizza"], ["Food", "Burgers"]),
        _record("e", ["Food"]),
        _record("f"),
    ]


def _index(forest: Sequence[CategoryNode]) -> Dict[tuple, CategoryNode]:
    return {node.path: node for root in forest for node in root.walk()}


def test_forest_is_sorted_and_nested(records) -> None:
    forest = build_category_tree(records)
    assert [node.label for node in forest] == ["Food", "Shopping"]
    shopping = forest[1]
    assert [child.label for child in shopping.children] == ["Books", "Fashion"]
    fashion = shopping.child("Fashion")
    assert fashion is not None
    assert [child.label for child in fashion.children] == ["Bags", "Shoes"]
    assert fashion.children[1].path == ("Shopping", "Fashion", "Shoes")
    assert fashion.children[1].level == 2


def test_counts_are_distinct_memberships(records) -> None:
    nodes = _index(build_category_tree(records))
    assert nodes[("Shopping",)].count == 3
    assert nodes[("Shopping", "Fashion")].count == 2
    assert nodes[("Shopping", "Fashion", "Shoes")].count == 2
    assert nodes[("Shopping", "Fashion", "Bags")].count == 1
    assert nodes[("Food",)].count == 2
    assert nodes[("Food", "Pizza")].count == 1


def test_sibling_paths_count_once_at_shared_ancestor() -> None:
    forest = build_category_tree([_record("x", ["Food", "Pizza"], ["Food", "Burgers"])])
    food = forest[0]
    assert food.count == 1
    assert sum(child.count for child in food.children) == 2


def test_record_terminating_at_inner_node_is_counted(records) -> None:
    food = _index(build_category_tree(records))[("Food",)]
    assert food.member_identities == frozenset({"d", "e"})


def test_uncategorized_records_contribute_no_node(records) -> None:
    nodes = _index(build_category_tree(records))
    assert ("Other",) not in nodes
    assert all("f" not in node.member_identities for node in nodes.values())
    assert build_category_tree([_record("g")]) == []


def test_count_matches_records_under_each_path(records) -> None:
    for path, node in _index(build_category_tree(records)).items():
        expected = {
            record.identity
            for record in records
            if any(candidate[: len(path)] == path for candidate in record.category_paths)
        }
        assert node.member_identities == expected
        terminating = {record.identity for record in records if path in record.category_paths}
        if node.children and not terminating:
            assert node.count <= sum(child.count for child in node.children)


def test_parent_count_equals_child_sum_without_shared_records() -> None:
    forest = build_category_tree(
        [_record("p", ["Food", "Pizza"]), _record("q", ["Food", "Burgers"])]
    )
    food = forest[0]
    assert food.count == sum(child.count for child in food.children) == 2


def test_labels_are_title_cased_and_merged() -> None:
    forest = build_category_tree([_record("a", ["food", "pizza"]), _record("b", ["Food", "Pizza"])])
    assert len(forest) == 1
    assert forest[0].label == "Food"
    assert forest[0].children[0].count == 2


def test_children_sort_case_sensitively() -> None:
    forest = build_category_tree([_record("a", ["Zoo"]), _record("b", ["BBQ"]), _record("c", ["Bakery"])])
    assert [node.label for node in forest] == ["BBQ", "Bakery", "Zoo"]


def test_build_is_independent_of_record_order(records) -> None:
    expected = build_category_tree(records)
    for permutation in itertools.permutations(records):
        assert build_category_tree(list(permutation)) == expected


def test_count_is_serialized(records) -> None:
    payload = build_category_tree(records)[0].model_dump()
    assert payload["label"] == "Food"
    assert payload["count"] == 2


def test_find_node(records) -> None:
    forest = build_category_tree(records)
    node = find_node(forest, ["shopping", "fashion"])
    assert node is not None
    assert node.path == ("Shopping", "Fashion")
    assert find_node(forest, ["Shopping", "Toys"]) is None


def test_filter_by_path_matches_prefixes_case_insensitively(records) -> None:
    selected = filter_by_path(records, ["shopping", "FASHION"])
    assert [record.identity for record in selected] == ["a", "b"]
    assert [record.identity for record in filter_by_path(records, ["Food"])] == ["d", "e"]
    assert filter_by_path(records, ["Food", "Pizza", "Slices"]) == []


def test_filter_by_empty_path_selects_everything(records) -> None:
    assert filter_by_path(records, []) == records


def test_joined_list_segments_build_nested_nodes() -> None:
    record = normalize_record({"name": "Slice House", "yelpUrl": "u1", "categories": [["Food > Pizza"]]})
    assert isinstance(record, Record)
    forest = build_category_tree([record])
    assert [node.label for node in forest] == ["Food"]
    assert [child.path for child in forest[0].children] == [("Food", "Pizza")]
    for node in forest[0].walk():
        assert tuple(segments(display(node.path))) == node.path
