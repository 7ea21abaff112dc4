"""Tests for shard payload validation and merging."""
from __future__ import annotations

import itertools

import pytest

from backend.catalog.contracts import ShardResult
from backend.catalog.dedup import dedupe
from backend.catalog.errors import InvalidResponseShape
from backend.catalog.normalization import RecordNormalizer
from backend.catalog.shards import ShardMerger, merge_shards, parse_shard_payload


def _shard(code: str, *names: str) -> ShardResult:
    return ShardResult.success(
        code,
        [{"name": name, "yelpUrl": f"https://example.com/{name}", "categories": [["Food"]]} for name in names],
    )


def test_canonical_mapping_uses_keys_as_source_urls() -> None:
    result = parse_shard_payload(
        "98052",
        {
            "https://example.com/biz/a": {"name": "A", "categories": [["Food"]]},
            "https://example.com/biz/b": {"name": "B", "yelpUrl": "https://example.com/biz/b2"},
        },
    )
    assert result.ok
    assert [record["yelpUrl"] for record in result.records] == [
        "https://example.com/biz/a",
        "https://example.com/biz/b2",
    ]


def test_legacy_list_and_envelope_shapes_are_accepted() -> None:
    listed = parse_shard_payload("98052", [{"name": "A", "yelpUrl": "u-a"}, "junk"])
    wrapped = parse_shard_payload("98052", {"businesses": [{"name": "A", "yelpUrl": "u-a"}]})
    assert listed.records == wrapped.records == ({"name": "A", "yelpUrl": "u-a"},)


def test_envelope_with_sibling_members_keeps_its_businesses() -> None:
    result = parse_shard_payload(
        "98052",
        {
            "categories": {"Food": 1},
            "businesses": [{"name": "Diner", "yelpUrl": "u1", "categories": [["Food"]]}],
        },
    )
    assert result.ok
    assert result.records == ({"name": "Diner", "yelpUrl": "u1", "categories": [["Food"]]},)
    records, rejected = RecordNormalizer().normalize_many(list(result.records))
    assert [record.name for record in records] == ["Diner"]
    assert rejected == []


def test_envelope_with_keyed_businesses_uses_keys_as_source_urls() -> None:
    result = parse_shard_payload(
        "98052",
        {"categories": {}, "businesses": {"u1": {"name": "Diner", "categories": [["Food"]]}}},
    )
    records, _rejected = RecordNormalizer().normalize_many(list(result.records))
    assert [record.identity for record in records] == ["u1"]


@pytest.mark.parametrize("envelope", [None, "oops", 7])
def test_envelope_with_scalar_businesses_raises(envelope) -> None:
    with pytest.raises(InvalidResponseShape):
        parse_shard_payload("98052", {"businesses": envelope})


def test_malformed_entries_in_mapping_are_skipped() -> None:
    result = parse_shard_payload("98052", {"u-a": {"name": "A"}, "u-b": ["not", "a", "record"]})
    assert len(result.records) == 1


@pytest.mark.parametrize("payload", [None, "oops", 42, 3.5])
def test_invalid_top_level_shape_raises(payload) -> None:
    with pytest.raises(InvalidResponseShape):
        parse_shard_payload("98052", payload)


def test_failed_shards_are_skipped() -> None:
    results = [
        ShardResult.failure("00001", "timeout"),
        _shard("00002", "a", "b"),
        ShardResult.failure("00003", "HTTP 500"),
    ]
    merged = merge_shards(results)
    assert [record["name"] for record in merged] == ["a", "b"]


def test_no_successful_shards_yields_empty_list() -> None:
    assert merge_shards([]) == []
    assert merge_shards([ShardResult.failure("00001", "timeout")]) == []
    assert merge_shards([ShardResult.success("00001", [])]) == []


def test_merge_is_identical_for_every_completion_order() -> None:
    results = [
        _shard("98052", "a", "b"),
        _shard("98033", "b", "c"),
        ShardResult.failure("98004", "timeout"),
        _shard("98052", "d"),
    ]
    expected = merge_shards(results)
    for permutation in itertools.permutations(results):
        assert merge_shards(permutation) == expected


def test_merged_then_deduplicated_output_is_order_independent() -> None:
    normalizer = RecordNormalizer()
    results = [
        ShardResult.success("1", [{"name": "Pie", "yelpUrl": "u", "categories": [["Food"]], "rating": 5}]),
        ShardResult.success("2", [{"name": "Pie", "yelpUrl": "u", "categories": [["Food", "Pizza"]], "rating": 1}]),
        ShardResult.success("3", [{"name": "Bar", "yelpUrl": "v"}]),
    ]
    expected = None
    for permutation in itertools.permutations(results):
        records, _ = normalizer.normalize_many(merge_shards(permutation))
        output = dedupe(records)
        if expected is None:
            expected = output
        assert output == expected


def test_incremental_merger_matches_batch_merge() -> None:
    results = [_shard("2", "x"), ShardResult.failure("3", "timeout"), _shard("1", "y")]
    merger = ShardMerger()
    for result in reversed(results):
        merger.add(result)
    assert merger.records() == merge_shards(results)
    assert merger.total_count == 3
    assert merger.failed_count == 1
    assert not merger.all_failed


def test_all_failed_flag() -> None:
    merger = ShardMerger()
    assert not merger.all_failed
    merger.extend([ShardResult.failure("1", "timeout"), ShardResult.failure("2", "HTTP 502")])
    assert merger.all_failed
    assert merger.records() == []
