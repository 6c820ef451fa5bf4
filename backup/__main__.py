"""Command line entrypoint: ``python -m backup``.

Example::

    DISCORD_WEBHOOK_URL=https://discord.com/api/webhooks/1/abc python -m backup --db shop
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pymongo import MongoClient

from observability.logging import configure_logging, get_logger
from settings import MongoSettings, load_backup_settings

from .errors import BackupError
from .service import (
    LATEST_SUMMARY_NAME,
    build_mongo_uri,
    read_summary_if_exists,
    run_webhook_backup,
    should_run_backup,
)


logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="backup", description="Back up MongoDB to a webhook.")
    p.add_argument("--webhook", dest="webhook_url", help="webhook URL")
    p.add_argument("--db", dest="db_name", help="database to back up (default: all)")
    p.add_argument("--include-system-dbs", dest="include_system_dbs", nargs="?", const="true")
    p.add_argument(
        "--include-system-collections", dest="include_system_collections", nargs="?", const="true"
    )
    p.add_argument("--max-file-mb", dest="max_file_mb", type=float)
    p.add_argument("--interval-hours", dest="interval_hours", type=float)
    p.add_argument("--out-dir", dest="out_dir")
    p.add_argument("--mongo-uri", dest="mongo_uri")
    p.add_argument("--if-due", action="store_true", help="skip unless the interval elapsed")
    p.add_argument("--log-level", default="INFO")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        settings = load_backup_settings(
            webhook_url=args.webhook_url,
            db_name=args.db_name,
            include_system_dbs=args.include_system_dbs,
            include_system_collections=args.include_system_collections,
            max_file_mb=args.max_file_mb,
            interval_hours=args.interval_hours,
            out_dir=args.out_dir,
        )
    except BackupError as exc:
        logger.error("backup_configuration_failed", error=str(exc))
        return 1

    if args.if_due:
        previous = read_summary_if_exists(Path(settings.out_dir).resolve() / LATEST_SUMMARY_NAME)
        if not should_run_backup(previous, settings.interval_hours):
            logger.info("backup_not_due", interval_hours=settings.interval_hours)
            return 0

    mongo = MongoSettings()
    uri = args.mongo_uri or mongo.uri or build_mongo_uri(
        mongo.host, mongo.port, mongo.username, mongo.password, mongo.auth
    )
    client = MongoClient(uri)
    try:
        result = run_webhook_backup(client, settings)
    except BackupError as exc:
        logger.error("backup_run_failed", error=str(exc))
        return 1
    finally:
        client.close()

    print(result.summary_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
