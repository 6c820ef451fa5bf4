"""Export MongoDB collections to extended JSON files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from bson import json_util

from observability.logging import get_logger

from .errors import BackupError
from .stats import SYSTEM_DATABASES


logger = get_logger(__name__)

_JSON_OPTIONS = json_util.RELAXED_JSON_OPTIONS


def _write_collection(collection: Any, destination: Path) -> int:
    count = 0
    with destination.open("w", encoding="utf-8") as handle:
        handle.write("[")
        for document in collection.find():
            handle.write("\n" if count == 0 else ",\n")
            handle.write(json_util.dumps(document, json_options=_JSON_OPTIONS))
            count += 1
        handle.write("\n]\n" if count else "]\n")
    return count


def dump_database(
    client: Any,
    db_name: str,
    *,
    out_dir: Path,
    include_system_collections: bool = False,
) -> Path:
    """Write every collection of ``db_name`` to ``<out_dir>/<db_name>/<name>.json``."""

    if not db_name:
        raise BackupError("dump_database_name_missing")

    database = client[db_name]
    target = Path(out_dir) / db_name
    target.mkdir(parents=True, exist_ok=True)

    try:
        names = sorted(database.list_collection_names())
        for name in names:
            if not include_system_collections and name.startswith("system."):
                continue
            documents = _write_collection(database[name], target / f"{name}.json")
            logger.debug("backup_collection_dumped", db=db_name, collection=name, documents=documents)
    except OSError as exc:
        raise BackupError(f"dump_write_failed: {exc}") from exc

    logger.info("backup_database_dumped", db=db_name, path=str(target))
    return target


def dump_all_databases(
    client: Any,
    *,
    out_dir: Path,
    include_system_dbs: bool = False,
    include_system_collections: bool = False,
) -> list[Path]:
    """Dump every database reported by the server."""

    dumped: list[Path] = []
    for name in client.list_database_names():
        if not include_system_dbs and name in SYSTEM_DATABASES:
            continue
        dumped.append(
            dump_database(
                client,
                name,
                out_dir=out_dir,
                include_system_collections=include_system_collections,
            )
        )
    return dumped
