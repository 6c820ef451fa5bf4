"""MongoDB storage statistics and run-over-run deltas."""

from __future__ import annotations

import math
from typing import Any

from models import (
    DbStorageRow,
    Delta,
    DeltaDirection,
    StorageError,
    StorageReport,
    StorageTotals,
)
from observability.logging import get_logger

from .formatting import normalize_number


logger = get_logger(__name__)

SYSTEM_DATABASES = frozenset({"admin", "local", "config"})


def list_db_names_for_stats(
    client: Any,
    *,
    db_name: str | None = None,
    include_system_dbs: bool = False,
) -> list[str]:
    """Return the databases whose statistics should be collected."""

    if db_name:
        return [db_name]

    listing = client.admin.command("listDatabases", nameOnly=True)
    names: list[str] = []
    for info in (listing or {}).get("databases") or []:
        name = (info or {}).get("name")
        if not name:
            continue
        if not include_system_dbs and name in SYSTEM_DATABASES:
            continue
        names.append(name)
    return names


def _row_from_stats(name: str, stats: dict[str, Any]) -> DbStorageRow:
    storage_size = normalize_number(stats.get("storageSize"))
    index_size = normalize_number(stats.get("indexSize"))
    return DbStorageRow(
        db=name,
        collections=int(normalize_number(stats.get("collections"))),
        data_size=normalize_number(stats.get("dataSize")),
        storage_size=storage_size,
        index_size=index_size,
        total_size=storage_size + index_size,
    )


def collect_db_storage_stats(
    client: Any,
    *,
    db_name: str | None = None,
    include_system_dbs: bool = False,
) -> StorageReport:
    """Query ``dbStats`` for each target database.

    A failing database is recorded in ``errors`` and skipped. A failing
    database listing is recorded under ``*`` and yields an empty report.
    Rows are ordered by ``total_size`` descending; ties keep listing order.
    """

    errors: list[StorageError] = []
    try:
        names = list_db_names_for_stats(
            client, db_name=db_name, include_system_dbs=include_system_dbs
        )
    except Exception as exc:  # noqa: BLE001 - recorded in the report
        logger.warning("backup_stats_listing_failed", error=str(exc))
        errors.append(StorageError(db="*", error=str(exc) or exc.__class__.__name__))
        names = []

    rows: list[DbStorageRow] = []
    for name in names:
        try:
            stats = client[name].command("dbStats", scale=1)
        except Exception as exc:  # noqa: BLE001 - recorded in the report
            logger.warning("backup_stats_db_failed", db=name, error=str(exc))
            errors.append(StorageError(db=name, error=str(exc) or exc.__class__.__name__))
            continue
        rows.append(_row_from_stats(name, stats or {}))

    rows.sort(key=lambda row: row.total_size, reverse=True)
    totals = StorageTotals(
        data_size=sum(row.data_size for row in rows),
        storage_size=sum(row.storage_size for row in rows),
        index_size=sum(row.index_size for row in rows),
        total_size=sum(row.total_size for row in rows),
    )
    logger.info(
        "backup_stats_collected",
        databases=len(rows),
        errors=len(errors),
        total_size=totals.total_size,
    )
    return StorageReport(per_db=rows, errors=errors, totals=totals)


def calculate_delta(current: Any, previous: Any) -> Delta | None:
    """Compare ``current`` with ``previous``; ``None`` if either is not finite."""

    if not _is_finite_number(current) or not _is_finite_number(previous):
        return None
    diff = current - previous
    if diff > 0:
        direction = DeltaDirection.increased
    elif diff < 0:
        direction = DeltaDirection.decreased
    else:
        direction = DeltaDirection.unchanged
    return Delta(
        current=current,
        previous=previous,
        diff=diff,
        direction=direction,
        absolute_diff=abs(diff),
    )


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
