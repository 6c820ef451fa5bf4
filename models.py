"""Pydantic models describing backup run summaries.

Field names are snake_case in Python and camelCase on disk; summaries are
written with ``model_dump(by_alias=True)`` and read back with either form.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
try:  # Python 3.11+
    from enum import StrEnum as _StrEnum
except ImportError:  # Python 3.10 fallback
    class _StrEnum(str, Enum):
        pass

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeltaDirection(_StrEnum):
    """Trend of a metric compared to the previous run."""

    increased = "increased"
    decreased = "decreased"
    unchanged = "unchanged"


class Delta(BaseModel):
    """Difference between the current and previous value of a metric."""

    current: int | float
    previous: int | float
    diff: int | float
    direction: DeltaDirection
    absolute_diff: int | float = Field(alias="absoluteDiff")

    model_config = ConfigDict(populate_by_name=True)


class DbStorageRow(BaseModel):
    """Storage statistics for a single database."""

    db: str
    collections: int = 0
    data_size: int | float = Field(default=0, alias="dataSize")
    storage_size: int | float = Field(default=0, alias="storageSize")
    index_size: int | float = Field(default=0, alias="indexSize")
    total_size: int | float = Field(default=0, alias="totalSize")

    model_config = ConfigDict(populate_by_name=True)


class StorageError(BaseModel):
    """A database whose statistics could not be collected (``*`` for listing)."""

    db: str
    error: str


class StorageTotals(BaseModel):
    data_size: int | float = Field(default=0, alias="dataSize")
    storage_size: int | float = Field(default=0, alias="storageSize")
    index_size: int | float = Field(default=0, alias="indexSize")
    total_size: int | float = Field(default=0, alias="totalSize")

    model_config = ConfigDict(populate_by_name=True)


class StorageReport(BaseModel):
    """Per-database storage statistics gathered during a run."""

    per_db: list[DbStorageRow] = Field(default_factory=list, alias="perDb")
    errors: list[StorageError] = Field(default_factory=list)
    totals: StorageTotals = Field(default_factory=StorageTotals)
    generated_at: datetime = Field(default_factory=_utcnow, alias="generatedAt")

    model_config = ConfigDict(populate_by_name=True)


class BackupSummary(BaseModel):
    """Outcome of one backup run, persisted as ``backup-summary.json``."""

    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    scope: str
    db_name: str | None = Field(default=None, alias="dbName")
    run_out_dir: str = Field(alias="runOutDir")
    zip_file_path: str = Field(alias="zipFilePath")
    raw_backup_bytes: int = Field(ge=0, alias="rawBackupBytes")
    zip_bytes: int = Field(ge=0, alias="zipBytes")
    compression_saved_bytes: int = Field(ge=0, alias="compressionSavedBytes")
    compression_percent: float = Field(ge=0, le=100, alias="compressionPercent")
    storage: StorageReport
    storage_delta: Delta | None = Field(default=None, alias="storageDelta")
    zip_delta: Delta | None = Field(default=None, alias="zipDelta")
    top_databases: list[DbStorageRow] = Field(
        default_factory=list, max_length=3, alias="topDatabases"
    )
    file_count: int = Field(default=0, ge=0, alias="fileCount")

    model_config = ConfigDict(populate_by_name=True, frozen=True)
