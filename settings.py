"""Settings models for the backup runner."""

from __future__ import annotations

import math
from typing import Any

from pydantic import ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from backup.errors import BackupError
from backup.formatting import parse_boolean


class MongoSettings(BaseSettings):
    """Settings for the MongoDB connection.

    Environment variables follow the ``MONGO_`` prefix, e.g. ``MONGO_HOST``.
    ``MONGO_URI`` takes precedence over the individual connection fields.
    """

    uri: str | None = None
    host: str = "localhost"
    port: int = 27017
    username: str | None = None
    password: str | None = None
    auth: str = "admin"

    model_config = ConfigDict(extra="ignore", env_prefix="MONGO_")


class WebhookBackupSettings(BaseSettings):
    """Options of a webhook backup run.

    Read from ``DISCORD_WEBHOOK_URL`` and ``DISCORD_BACKUP_*`` variables (or
    ``.env``). Keyword arguments override the environment.
    """

    webhook_url: str | None = Field(default=None, validation_alias="DISCORD_WEBHOOK_URL")
    db_name: str = Field(default="", validation_alias="DISCORD_BACKUP_DB")
    include_system_dbs: bool = False
    include_system_collections: bool = False
    max_file_mb: float = 8
    interval_hours: float = 4
    out_dir: str = "./mongodb-cli"
    request_timeout: float = 120.0

    model_config = ConfigDict(
        env_prefix="DISCORD_BACKUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("include_system_dbs", "include_system_collections", mode="before")
    @classmethod
    def _parse_flag(cls, value: Any) -> bool:
        return parse_boolean(value, False)

    @field_validator("db_name", mode="before")
    @classmethod
    def _strip_db_name(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("max_file_mb", "request_timeout")
    @classmethod
    def _positive(cls, value: float) -> float:
        if not math.isfinite(value) or value <= 0:
            raise ValueError("must be a positive number")
        return value

    @model_validator(mode="after")
    def _part_size_fits(self) -> "WebhookBackupSettings":
        if self.max_file_bytes < 1:
            raise ValueError("max_file_mb is below one byte")
        return self

    @property
    def max_file_bytes(self) -> int:
        return math.floor(self.max_file_mb * 1024 * 1024)


_OVERRIDE_KEYS = {
    name: field.validation_alias
    for name, field in WebhookBackupSettings.model_fields.items()
    if isinstance(field.validation_alias, str)
}


def load_backup_settings(**overrides: Any) -> WebhookBackupSettings:
    """Build settings where non-``None`` overrides win over the environment."""

    # Keyed by alias so the override replaces the environment value instead of
    # competing with it.
    explicit = {
        _OVERRIDE_KEYS.get(key, key): value
        for key, value in overrides.items()
        if value is not None
    }
    try:
        return WebhookBackupSettings(**explicit)
    except ValidationError as exc:
        raise BackupError(f"backup_configuration_invalid: {exc}") from exc
