"""Tests for record deduplication."""
from __future__ import annotations

import itertools
from typing import List

from backend.catalog.contracts import Record
from backend.catalog.dedup import dedupe


def _record(identity: str, name: str, *paths, **attributes) -> Record:
    return Record(
        identity=identity,
        name=name,
        category_paths=tuple(tuple(path) for path in paths),
        attributes=attributes,
    )


def _sample() -> List[Record]:
    return [
        _record("u1", "Zeta Pizza", ["Food"], rating=4.0),
        _record("u2", "alpha Bakery", ["Food", "Bakeries"]),
        _record("u1", "Zeta Pizza (dup)", ["Food", "Pizza"], rating=2.0),
        _record("u3", "Beta Bar"),
        _record("u2", "alpha Bakery", ["Food", "Bakeries"]),
    ]


def test_collisions_union_paths_and_keep_first_payload() -> None:
    result = dedupe(_sample())
    by_identity = {record.identity: record for record in result}
    assert len(result) == 3
    merged = by_identity["u1"]
    assert merged.name == "Zeta Pizza"
    assert merged.attributes == {"rating": 4.0}
    assert merged.category_paths == (("Food",), ("Food", "Pizza"))
    assert by_identity["u2"].category_paths == (("Food", "Bakeries"),)


def test_output_is_sorted_by_name_case_insensitively() -> None:
    names = [record.name for record in dedupe(_sample())]
    assert names == ["alpha Bakery", "Beta Bar", "Zeta Pizza"]


def test_dedupe_is_idempotent() -> None:
    once = dedupe(_sample())
    assert dedupe(once) == once


def test_identity_set_and_paths_are_order_independent() -> None:
    expected = {(record.identity, record.category_paths) for record in dedupe(_sample())}
    for permutation in itertools.permutations(_sample()):
        result = dedupe(permutation)
        assert {(record.identity, record.category_paths) for record in result} == expected


def test_uncategorized_duplicate_keeps_existing_paths() -> None:
    result = dedupe([_record("u9", "Shop", ["Shopping"]), _record("u9", "Shop")])
    assert result[0].category_paths == (("Shopping",),)


def test_empty_input() -> None:
    assert dedupe([]) == []
