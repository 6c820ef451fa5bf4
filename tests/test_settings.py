"""Tests for configuration loading and precedence."""

from __future__ import annotations

import pytest

from backup.errors import BackupError
from settings import MongoSettings, WebhookBackupSettings, load_backup_settings


def test_defaults() -> None:
    settings = WebhookBackupSettings()
    assert settings.webhook_url is None
    assert settings.db_name == ""
    assert settings.include_system_dbs is False
    assert settings.include_system_collections is False
    assert settings.max_file_mb == 8
    assert settings.max_file_bytes == 8 * 1024 * 1024
    assert settings.interval_hours == 4
    assert settings.out_dir == "./mongodb-cli"


def test_environment_values(monkeypatch) -> None:
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", "https://discord.com/api/webhooks/1/a")
    monkeypatch.setenv("DISCORD_BACKUP_DB", " shop ")
    monkeypatch.setenv("DISCORD_BACKUP_INCLUDE_SYSTEM_DBS", "yes")
    monkeypatch.setenv("DISCORD_BACKUP_INCLUDE_SYSTEM_COLLECTIONS", "garbage")
    monkeypatch.setenv("DISCORD_BACKUP_MAX_FILE_MB", "2.5")
    monkeypatch.setenv("DISCORD_BACKUP_OUT_DIR", "/srv/backups")

    settings = WebhookBackupSettings()

    assert settings.webhook_url == "https://discord.com/api/webhooks/1/a"
    assert settings.db_name == "shop"
    assert settings.include_system_dbs is True
    assert settings.include_system_collections is False
    assert settings.max_file_bytes == int(2.5 * 1024 * 1024)
    assert settings.out_dir == "/srv/backups"


def test_explicit_overrides_win_over_environment(monkeypatch) -> None:
    monkeypatch.setenv("DISCORD_BACKUP_DB", "from-env")
    monkeypatch.setenv("DISCORD_BACKUP_MAX_FILE_MB", "16")

    settings = load_backup_settings(db_name="explicit", max_file_mb=None, interval_hours=6)

    assert settings.db_name == "explicit"
    assert settings.max_file_mb == 16
    assert settings.interval_hours == 6


def test_explicit_webhook_url_wins_over_environment(monkeypatch) -> None:
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", "https://discord.com/api/webhooks/1/env")

    settings = load_backup_settings(webhook_url="https://discord.com/api/webhooks/2/cli")

    assert settings.webhook_url == "https://discord.com/api/webhooks/2/cli"


def test_unprefixed_variables_are_ignored(monkeypatch) -> None:
    monkeypatch.setenv("DB_NAME", "someone-elses-db")
    monkeypatch.setenv("WEBHOOK_URL", "https://discord.com/api/webhooks/1/other")

    settings = load_backup_settings()

    assert settings.db_name == ""
    assert settings.webhook_url is None


def test_unprefixed_variables_in_dotenv_are_ignored(tmp_path) -> None:
    (tmp_path / ".env").write_text(
        "DB_NAME=someone-elses-db\nWEBHOOK_URL=https://discord.com/api/webhooks/1/other\n",
        encoding="utf-8",
    )

    settings = WebhookBackupSettings()

    assert settings.db_name == ""
    assert settings.webhook_url is None


@pytest.mark.parametrize("value", [0, -1, float("inf")])
def test_non_positive_file_size_is_rejected(value) -> None:
    with pytest.raises(BackupError, match="backup_configuration_invalid"):
        load_backup_settings(max_file_mb=value)


def test_mongo_settings_prefix(monkeypatch) -> None:
    monkeypatch.setenv("MONGO_HOST", "db.internal")
    monkeypatch.setenv("MONGO_PORT", "27018")
    settings = MongoSettings()
    assert (settings.host, settings.port, settings.uri) == ("db.internal", 27018, None)


def test_file_size_below_one_byte_is_rejected() -> None:
    with pytest.raises(BackupError, match="max_file_mb is below one byte"):
        load_backup_settings(max_file_mb=1e-7)
