"""Shared fakes for backup tests: an in-memory Mongo client and a webhook recorder."""

from __future__ import annotations

import json

import httpx
import pytest


WEBHOOK_URL = "https://discord.com/api/webhooks/123456789/abcDEF-123"


class FakeCollection:
    def __init__(self, documents):
        self.documents = list(documents)

    def find(self):
        return iter(self.documents)


class FakeDatabase:
    """Database stub answering ``list_collection_names`` and ``dbStats``."""

    def __init__(self, name, collections=None, stats=None, stats_error=None):
        self.name = name
        self.collections = dict(collections or {})
        self.stats = stats or {}
        self.stats_error = stats_error
        self.commands: list[tuple[str, dict]] = []

    def list_collection_names(self):
        return list(self.collections)

    def __getitem__(self, name):
        return FakeCollection(self.collections[name])

    def command(self, name, **kwargs):
        self.commands.append((name, kwargs))
        if self.stats_error is not None:
            raise self.stats_error
        return self.stats


class _FakeAdmin:
    def __init__(self, client):
        self._client = client

    def command(self, name, **kwargs):
        assert name == "listDatabases"
        assert kwargs.get("nameOnly") is True
        if self._client.listing_error is not None:
            raise self._client.listing_error
        return {"databases": [{"name": db} for db in self._client.databases]}


class FakeMongoClient:
    def __init__(self, databases=(), listing_error=None):
        self.databases = {db.name: db for db in databases}
        self.listing_error = listing_error

    @property
    def admin(self):
        return _FakeAdmin(self)

    def __getitem__(self, name):
        return self.databases[name]

    def list_database_names(self):
        return list(self.databases)


class WebhookRecorder:
    """``httpx.MockTransport`` handler replaying scripted responses."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(204)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))

    def contents(self) -> list[str]:
        """Return the ``content`` caption of every recorded request."""

        captions = []
        for request in self.requests:
            body = request.content
            if request.headers["content-type"].startswith("application/json"):
                captions.append(json.loads(body)["content"])
                continue
            marker = b'name="payload_json"\r\nContent-Type: application/json\r\n\r\n'
            start = body.index(marker) + len(marker)
            end = body.index(b"\r\n", start)
            captions.append(json.loads(body[start:end])["content"])
        return captions


@pytest.fixture
def recorder() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


CONFIG_ENV_KEYS = (
    "DISCORD_WEBHOOK_URL",
    "DISCORD_BACKUP_DB",
    "DISCORD_BACKUP_INCLUDE_SYSTEM_DBS",
    "DISCORD_BACKUP_INCLUDE_SYSTEM_COLLECTIONS",
    "DISCORD_BACKUP_MAX_FILE_MB",
    "DISCORD_BACKUP_INTERVAL_HOURS",
    "DISCORD_BACKUP_OUT_DIR",
    "DISCORD_BACKUP_REQUEST_TIMEOUT",
    "WEBHOOK_URL",
    "DB_NAME",
    "MONGO_URI",
    "MONGO_HOST",
    "MONGO_PORT",
    "MONGO_USERNAME",
    "MONGO_PASSWORD",
    "MONGO_AUTH",
)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    """Run every test without the caller's environment or ``.env`` file."""

    for key in CONFIG_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
