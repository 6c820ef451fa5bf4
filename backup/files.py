"""Filesystem helpers: directory scanning, zip archives and part splitting."""

from __future__ import annotations

import zipfile
from pathlib import Path

from observability.logging import get_logger

from .errors import BackupError


logger = get_logger(__name__)

PART_SUFFIX_WIDTH = 3


def list_files_recursively(root: Path) -> list[Path]:
    """Return every regular file below ``root``.

    Siblings are visited one at a time in directory listing order; callers sort
    the result when they need a stable order.
    """

    files: list[Path] = []
    for entry in Path(root).iterdir():
        if entry.is_dir():
            files.extend(list_files_recursively(entry))
            continue
        if entry.is_file():
            files.append(entry)
    return files


def sum_file_sizes(paths: list[Path]) -> int:
    """Return the combined size of ``paths``; a missing path raises ``OSError``."""

    total = 0
    for path in paths:
        total += Path(path).stat().st_size
    return total


def zip_directory(source_dir: Path, zip_path: Path) -> int:
    """Write every file under ``source_dir`` into ``zip_path``.

    Entry names are relative to ``source_dir`` so the directory itself is not
    part of the archive. Files disappearing between the scan and the write are
    skipped; any other failure raises :class:`BackupError`.

    Returns the number of bytes the archive writer emitted once the output
    stream is flushed.
    """

    source = Path(source_dir)
    destination = Path(zip_path)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with destination.open("wb") as handle:
            with zipfile.ZipFile(
                handle, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
            ) as archive:
                for file_path in sorted(list_files_recursively(source)):
                    arcname = file_path.relative_to(source).as_posix()
                    try:
                        archive.write(file_path, arcname)
                    except FileNotFoundError:
                        logger.warning("backup_archive_entry_vanished", path=str(file_path))
            handle.flush()
            written = handle.tell()
    except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
        raise BackupError(f"archive_failed: {exc}") from exc

    logger.info("backup_archive_created", path=str(destination), bytes=written)
    return written


def part_file_name(base_name: str, index: int) -> str:
    """Return the name of the ``index``-th part of ``base_name``."""

    return f"{base_name}.part{index:0{PART_SUFFIX_WIDTH}d}"


def split_file_into_parts(file_path: Path, part_size: int, output_dir: Path) -> list[Path]:
    """Split ``file_path`` into ``<name>.partNNN`` files of at most ``part_size`` bytes.

    Only one chunk is held in memory at a time. Concatenating the returned
    paths in order reproduces the original file.
    """

    if isinstance(part_size, bool) or not isinstance(part_size, int) or part_size <= 0:
        raise BackupError("part_size_invalid: must be a positive integer")

    source = Path(file_path)
    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    parts: list[Path] = []
    with source.open("rb") as handle:
        index = 1
        while True:
            chunk = handle.read(part_size)
            if not chunk:
                break
            part_path = target_dir / part_file_name(source.name, index)
            part_path.write_bytes(chunk)
            parts.append(part_path)
            index += 1

    logger.info("backup_archive_split", path=str(source), parts=len(parts), part_size=part_size)
    return parts
