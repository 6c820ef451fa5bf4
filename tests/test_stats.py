"""Tests for storage statistics collection and delta calculation."""

from __future__ import annotations

import pytest

from backup.stats import calculate_delta, collect_db_storage_stats, list_db_names_for_stats
from conftest import FakeDatabase, FakeMongoClient
from models import DeltaDirection


def _db(name, storage, index, data=0, collections=1):
    return FakeDatabase(
        name,
        stats={
            "collections": collections,
            "dataSize": data,
            "storageSize": storage,
            "indexSize": index,
        },
    )


def test_list_db_names_excludes_system_databases() -> None:
    client = FakeMongoClient([_db("admin", 1, 1), _db("shop", 1, 1), _db("local", 1, 1)])
    assert list_db_names_for_stats(client) == ["shop"]
    assert list_db_names_for_stats(client, include_system_dbs=True) == ["admin", "shop", "local"]
    assert list_db_names_for_stats(client, db_name="anything") == ["anything"]


def test_collect_stats_isolates_failing_database() -> None:
    broken = FakeDatabase("broken", stats_error=RuntimeError("not authorized"))
    client = FakeMongoClient([_db("small", 100, 10, data=80), broken, _db("large", 4000, 500, data=3000)])

    report = collect_db_storage_stats(client)

    assert [row.db for row in report.per_db] == ["large", "small"]
    assert [(err.db, err.error) for err in report.errors] == [("broken", "not authorized")]
    assert report.totals.total_size == 4500 + 110
    assert report.totals.total_size == sum(row.total_size for row in report.per_db)
    assert report.totals.data_size == 3080
    assert report.totals.index_size == 510
    assert report.per_db[0].total_size == report.per_db[0].storage_size + report.per_db[0].index_size


def test_collect_stats_listing_failure_is_not_fatal() -> None:
    client = FakeMongoClient([_db("shop", 1, 1)], listing_error=ConnectionError("down"))

    report = collect_db_storage_stats(client)

    assert report.per_db == []
    assert [(err.db, err.error) for err in report.errors] == [("*", "down")]
    assert report.totals.total_size == 0


def test_collect_stats_coerces_invalid_numbers() -> None:
    weird = FakeDatabase(
        "weird",
        stats={"collections": None, "dataSize": "n/a", "storageSize": float("nan"), "indexSize": 12},
    )
    report = collect_db_storage_stats(FakeMongoClient([weird]), db_name="weird")

    row = report.per_db[0]
    assert (row.collections, row.data_size, row.storage_size, row.index_size) == (0, 0, 0, 12)
    assert row.total_size == 12
    assert weird.commands == [("dbStats", {"scale": 1})]


def test_collect_stats_sort_is_stable_for_ties() -> None:
    client = FakeMongoClient([_db("b", 10, 0), _db("a", 10, 0), _db("c", 20, 0)])
    report = collect_db_storage_stats(client)
    assert [row.db for row in report.per_db] == ["c", "b", "a"]


@pytest.mark.parametrize(
    ("current", "previous", "direction", "diff"),
    [
        (150, 100, DeltaDirection.increased, 50),
        (100, 150, DeltaDirection.decreased, -50),
        (100, 100, DeltaDirection.unchanged, 0),
        (0.5, 0.25, DeltaDirection.increased, 0.25),
    ],
)
def test_calculate_delta(current, previous, direction, diff) -> None:
    delta = calculate_delta(current, previous)
    assert delta is not None
    assert delta.direction is direction
    assert delta.diff == diff
    assert delta.absolute_diff == abs(current - previous)
    assert (delta.current, delta.previous) == (current, previous)


@pytest.mark.parametrize(
    ("current", "previous"),
    [
        (float("nan"), 1),
        (1, float("inf")),
        (None, 1),
        (1, "2"),
    ],
)
def test_calculate_delta_requires_finite_numbers(current, previous) -> None:
    assert calculate_delta(current, previous) is None


def test_delta_serializes_with_camel_case_keys() -> None:
    delta = calculate_delta(10, 4)
    assert delta.model_dump(mode="json", by_alias=True) == {
        "current": 10,
        "previous": 4,
        "diff": 6,
        "direction": "increased",
        "absoluteDiff": 6,
    }
