"""Exception hierarchy for the backup pipeline."""

from __future__ import annotations


class BackupError(RuntimeError):
    """Raised when backup operations cannot be completed."""


class WebhookError(BackupError):
    """Raised when the webhook endpoint rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class WebhookRetriesExhausted(WebhookError):
    """Raised when the endpoint keeps rate limiting after every retry."""
