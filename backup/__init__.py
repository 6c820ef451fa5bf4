"""MongoDB backups packaged as zip archives and posted to a webhook."""

from .errors import BackupError, WebhookError, WebhookRetriesExhausted
from .service import (
    BackupRunResult,
    build_backup_summary_message,
    build_mongo_uri,
    run_webhook_backup,
    should_run_backup,
)
from .webhook import RetryPolicy, is_webhook_url

__all__ = [
    "BackupError",
    "BackupRunResult",
    "RetryPolicy",
    "WebhookError",
    "WebhookRetriesExhausted",
    "build_backup_summary_message",
    "build_mongo_uri",
    "is_webhook_url",
    "run_webhook_backup",
    "should_run_backup",
]
