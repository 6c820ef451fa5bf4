"""Backup orchestration: dump, archive, summarize and upload to a webhook."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote_plus

import httpx

from models import BackupSummary
from observability.logging import get_logger

from .dump import dump_all_databases, dump_database
from .errors import BackupError
from .files import list_files_recursively, split_file_into_parts, sum_file_sizes, zip_directory
from .formatting import format_bytes, format_timestamp, normalize_number
from .stats import calculate_delta, collect_db_storage_stats
from .webhook import DEFAULT_RETRY_POLICY, RetryPolicy, Sleep, is_webhook_url, post_file, post_message

if TYPE_CHECKING:
    from settings import WebhookBackupSettings


logger = get_logger(__name__)

LATEST_SUMMARY_NAME = "latest-backup-summary.json"
RUN_SUMMARY_NAME = "backup-summary.json"
PARTS_DIR_NAME = "zip-parts"
INTER_PART_DELAY = 0.35
TOP_DATABASES = 3


@dataclass(slots=True, frozen=True)
class BackupRunResult:
    """Payload returned after a successful backup run."""

    summary: BackupSummary
    summary_path: Path
    latest_summary_path: Path
    files: list[Path]
    split_parts: list[Path] = field(default_factory=list)
    uploaded: int = 0
    max_file_mb: float = 0
    interval_hours: float = 0


def build_mongo_uri(
    host: str,
    port: int,
    username: str | None,
    password: str | None,
    auth_database: str | None = None,
) -> str:
    """Return a MongoDB URI for the given connection parameters."""

    auth_db = auth_database or "admin"
    has_user = username is not None and str(username) != ""
    has_pass = password is not None and str(password) != ""
    if has_user and has_pass:
        user = quote_plus(str(username))
        passwd = quote_plus(str(password))
        auth_part = f"{user}:{passwd}@"
        auth_db_part = f"/{auth_db}"
    else:
        auth_part = ""
        auth_db_part = ""
    return f"mongodb://{auth_part}{host}:{port}{auth_db_part}"


def read_summary_if_exists(path: Path) -> dict[str, Any] | None:
    """Return the JSON object stored at ``path`` or ``None`` if unusable."""

    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("backup_previous_summary_unavailable", path=str(path), error=str(exc))
        return None
    return payload if isinstance(payload, dict) else None


def write_json(path: Path, payload: Any) -> None:
    """Write ``payload`` as indented UTF-8 JSON with a trailing newline."""

    Path(path).write_text(
        json.dumps(payload, indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )


def _previous_value(previous: dict[str, Any], *keys: str) -> int | float:
    node: Any = previous
    for key in keys:
        node = node.get(key) if isinstance(node, dict) else None
    return normalize_number(node)


def should_run_backup(
    previous_summary: dict[str, Any] | None,
    interval_hours: float,
    *,
    now: datetime | None = None,
) -> bool:
    """Return ``True`` if ``interval_hours`` elapsed since the previous run."""

    if not previous_summary:
        return True
    raw = previous_summary.get("createdAt")
    if not isinstance(raw, str):
        return True
    try:
        created = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return True
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current - created >= timedelta(hours=interval_hours)


def build_backup_summary_message(summary: BackupSummary) -> str:
    """Render the text report posted before the archive upload."""

    totals = summary.storage.totals
    lines = [
        "MongoDB backup (zip) completed.",
        f"Backup date: {summary.created_at.isoformat()}",
        f"Scope: {summary.scope}",
        f"DB storage now: {format_bytes(totals.total_size)} "
        f"(data {format_bytes(totals.data_size)}, indexes {format_bytes(totals.index_size)})",
        f"Backup size: raw {format_bytes(summary.raw_backup_bytes)} -> "
        f"zip {format_bytes(summary.zip_bytes)} "
        f"(decrease {format_bytes(summary.compression_saved_bytes)})",
    ]
    if summary.storage_delta:
        lines.append(
            f"Storage vs previous backup: {summary.storage_delta.direction.value} "
            f"{format_bytes(summary.storage_delta.absolute_diff)}"
        )
    if summary.zip_delta:
        lines.append(
            f"Zip size vs previous backup: {summary.zip_delta.direction.value} "
            f"{format_bytes(summary.zip_delta.absolute_diff)}"
        )
    if summary.top_databases:
        top = " | ".join(
            f"{row.db}={format_bytes(row.total_size)}" for row in summary.top_databases
        )
        lines.append(f"Top DB storage: {top}")
    if summary.storage.errors:
        lines.append(f"Storage stat errors: {len(summary.storage.errors)}")
    return "\n".join(lines)


def _resolve_timeout(timeout: float) -> httpx.Timeout:
    return httpx.Timeout(timeout, connect=min(timeout, 10.0))


def _validate(settings: WebhookBackupSettings) -> str:
    webhook_url = (settings.webhook_url or "").strip()
    if not webhook_url:
        raise BackupError("webhook_url_missing")
    if not is_webhook_url(webhook_url):
        raise BackupError("webhook_url_invalid")
    if settings.max_file_bytes < 1:
        raise BackupError("max_file_size_invalid: below one byte")
    return webhook_url


def run_webhook_backup(
    client: Any,
    settings: WebhookBackupSettings,
    *,
    http_client: httpx.Client | None = None,
    retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    sleep: Sleep = time.sleep,
    now: datetime | None = None,
) -> BackupRunResult:
    """Dump MongoDB, zip the dump and post it to the configured webhook.

    Stages run strictly in order and any failure propagates to the caller.
    Only per-database statistics errors are tolerated; they are reported in
    the summary instead.
    """

    if client is None or not callable(getattr(client, "__getitem__", None)):
        raise BackupError("mongo_client_missing")
    webhook_url = _validate(settings)
    max_file_bytes = settings.max_file_bytes
    db_name = settings.db_name

    started = now or datetime.now(timezone.utc)
    base_out_dir = Path(settings.out_dir).resolve()
    run_out_dir = base_out_dir / f"backup-{format_timestamp(started)}"
    latest_summary_path = base_out_dir / LATEST_SUMMARY_NAME
    previous_summary = read_summary_if_exists(latest_summary_path)

    run_out_dir.mkdir(parents=True, exist_ok=True)
    logger.info("backup_dump_started", scope=db_name or "all-databases", path=str(run_out_dir))
    if db_name:
        dump_database(
            client,
            db_name,
            out_dir=run_out_dir,
            include_system_collections=settings.include_system_collections,
        )
    else:
        dump_all_databases(
            client,
            out_dir=run_out_dir,
            include_system_dbs=settings.include_system_dbs,
            include_system_collections=settings.include_system_collections,
        )

    files = sorted(list_files_recursively(run_out_dir))
    raw_backup_bytes = sum_file_sizes(files)
    zip_file_path = base_out_dir / f"{run_out_dir.name}.zip"
    zip_bytes = zip_directory(run_out_dir, zip_file_path)
    compression_saved_bytes = max(raw_backup_bytes - zip_bytes, 0)
    compression_percent = (
        round(compression_saved_bytes / raw_backup_bytes * 100, 2) if raw_backup_bytes > 0 else 0
    )

    storage = collect_db_storage_stats(
        client, db_name=db_name, include_system_dbs=settings.include_system_dbs
    )
    if previous_summary is None:
        storage_delta = zip_delta = None
    else:
        storage_delta = calculate_delta(
            storage.totals.total_size,
            _previous_value(previous_summary, "storage", "totals", "totalSize"),
        )
        zip_delta = calculate_delta(zip_bytes, _previous_value(previous_summary, "zipBytes"))

    summary = BackupSummary(
        created_at=datetime.now(timezone.utc) if now is None else now,
        scope=f"db:{db_name}" if db_name else "all-databases",
        db_name=db_name or None,
        run_out_dir=str(run_out_dir),
        zip_file_path=str(zip_file_path),
        raw_backup_bytes=raw_backup_bytes,
        zip_bytes=zip_bytes,
        compression_saved_bytes=compression_saved_bytes,
        compression_percent=compression_percent,
        storage=storage,
        storage_delta=storage_delta,
        zip_delta=zip_delta,
        top_databases=storage.per_db[:TOP_DATABASES],
        file_count=len(files),
    )
    payload = summary.model_dump(mode="json", by_alias=True)
    summary_path = run_out_dir / RUN_SUMMARY_NAME
    write_json(summary_path, payload)
    write_json(latest_summary_path, payload)
    logger.info(
        "backup_summary_written",
        path=str(summary_path),
        raw_bytes=raw_backup_bytes,
        zip_bytes=zip_bytes,
    )

    owns_client = http_client is None
    http = http_client or httpx.Client(timeout=_resolve_timeout(settings.request_timeout))
    try:
        post_message(
            http, webhook_url, build_backup_summary_message(summary),
            policy=retry_policy, sleep=sleep,
        )

        split_parts: list[Path] = []
        if zip_bytes > max_file_bytes:
            split_parts = split_file_into_parts(
                zip_file_path, max_file_bytes, run_out_dir / PARTS_DIR_NAME
            )
            uploaded = _upload_parts(
                http, webhook_url, split_parts, zip_file_path, settings.max_file_mb,
                policy=retry_policy, sleep=sleep,
            )
        else:
            post_file(
                http,
                webhook_url,
                zip_file_path,
                f"MongoDB backup zip | {zip_file_path.name} | {format_bytes(zip_bytes)}",
                policy=retry_policy,
                sleep=sleep,
            )
            uploaded = 1

        split_note = f" (split parts={len(split_parts)})" if split_parts else ""
        post_message(
            http,
            webhook_url,
            f"Backup scheduler interval: {settings.interval_hours:g}h | uploaded={uploaded}"
            f"{split_note} | local backup dir={run_out_dir}",
            policy=retry_policy,
            sleep=sleep,
        )
    finally:
        if owns_client:
            http.close()

    logger.info("backup_run_completed", uploaded=uploaded, parts=len(split_parts))
    return BackupRunResult(
        summary=summary,
        summary_path=summary_path,
        latest_summary_path=latest_summary_path,
        files=files,
        split_parts=split_parts,
        uploaded=uploaded,
        max_file_mb=settings.max_file_mb,
        interval_hours=settings.interval_hours,
    )


def _upload_parts(
    http: httpx.Client,
    webhook_url: str,
    parts: list[Path],
    zip_file_path: Path,
    max_file_mb: float,
    *,
    policy: RetryPolicy,
    sleep: Sleep,
) -> int:
    post_message(
        http,
        webhook_url,
        f"Zip exceeded {max_file_mb:g}MB, split into {len(parts)} part(s) for upload.",
        policy=policy,
        sleep=sleep,
    )
    uploaded = 0
    for index, part_path in enumerate(parts, start=1):
        if index > 1:
            sleep(INTER_PART_DELAY)
        post_file(
            http,
            webhook_url,
            part_path,
            f"Backup zip part {index}/{len(parts)} | {part_path.name} | "
            f"{format_bytes(part_path.stat().st_size)}",
            policy=policy,
            sleep=sleep,
        )
        uploaded += 1
    post_message(
        http,
        webhook_url,
        f"To restore split zip: cat {zip_file_path.name}.part* > {zip_file_path.name}",
        policy=policy,
        sleep=sleep,
    )
    return uploaded
