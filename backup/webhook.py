"""Discord-style webhook transport with rate-limit aware retries."""

from __future__ import annotations

import json
import math
import re
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from observability.logging import get_logger

from .errors import WebhookError, WebhookRetriesExhausted


logger = get_logger(__name__)

WEBHOOK_URL_PATTERN = re.compile(
    r"^https://(?:canary\.|ptb\.)?discord(?:app)?\.com/api/webhooks/\d+/[\w-]+",
    re.IGNORECASE | re.ASCII,
)
RATE_LIMITED = 429
ERROR_EXCERPT_LIMIT = 300

Sleep = Callable[[float], None]


def is_webhook_url(url: Any) -> bool:
    """Return ``True`` if ``url`` looks like a Discord webhook endpoint."""

    if not isinstance(url, str):
        return False
    return WEBHOOK_URL_PATTERN.match(url) is not None


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Bounded retry budget for rate limited (HTTP 429) responses.

    ``retries`` counts attempts after the first one. The wait before each
    retry comes from the ``retry_after`` field of the response body, or
    ``fallback_delay`` seconds when the hint is missing.
    """

    retries: int = 4
    fallback_delay: float = 1.5

    def delay_for(self, body: str) -> float:
        """Return the number of seconds to wait before retrying."""

        try:
            payload = json.loads(body or "{}")
        except ValueError:
            return self.fallback_delay
        hint = payload.get("retry_after") if isinstance(payload, dict) else None
        if isinstance(hint, bool) or not isinstance(hint, (int, float)) or not math.isfinite(hint):
            return self.fallback_delay
        # Values above 1000 are already milliseconds.
        wait_ms = math.ceil(hint) if hint > 1000 else math.ceil(hint * 1000)
        return max(wait_ms, 0) / 1000


DEFAULT_RETRY_POLICY = RetryPolicy()


@dataclass(slots=True)
class _Part:
    name: str
    data: bytes
    content_type: str
    filename: str | None = None


@dataclass(slots=True)
class MultipartBody:
    """Ordered ``multipart/form-data`` payload with a random boundary."""

    boundary: str = field(default_factory=lambda: f"----mongobackup{secrets.token_hex(12)}")
    parts: list[_Part] = field(default_factory=list)

    def add_json(self, name: str, payload: Any) -> "MultipartBody":
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.parts.append(_Part(name=name, data=data, content_type="application/json"))
        return self

    def add_file(
        self,
        name: str,
        filename: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> "MultipartBody":
        self.parts.append(
            _Part(name=name, data=data, content_type=content_type, filename=filename)
        )
        return self

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def encode(self) -> bytes:
        chunks: list[bytes] = []
        for part in self.parts:
            disposition = f'form-data; name="{part.name}"'
            if part.filename is not None:
                disposition += f'; filename="{part.filename}"'
            header = (
                f"--{self.boundary}\r\n"
                f"Content-Disposition: {disposition}\r\n"
                f"Content-Type: {part.content_type}\r\n\r\n"
            )
            chunks.append(header.encode("utf-8"))
            chunks.append(part.data)
            chunks.append(b"\r\n")
        chunks.append(f"--{self.boundary}--\r\n".encode("utf-8"))
        return b"".join(chunks)


def post_with_retry(
    client: httpx.Client,
    url: str,
    body: bytes,
    headers: dict[str, str],
    *,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    sleep: Sleep = time.sleep,
) -> httpx.Response:
    """POST ``body`` to ``url``, retrying only on HTTP 429.

    Any other non-2xx status raises :class:`WebhookError` straight away.
    """

    attempt = 0
    while attempt <= policy.retries:
        try:
            response = client.post(url, content=body, headers=headers)
        except httpx.TransportError as exc:
            raise WebhookError(f"webhook_request_failed: {exc}") from exc

        status = response.status_code
        if status == RATE_LIMITED:
            if attempt >= policy.retries:
                break
            delay = policy.delay_for(response.text)
            logger.warning("webhook_rate_limited", attempt=attempt + 1, delay=delay)
            sleep(delay)
            attempt += 1
            continue
        if status < 200 or status >= 300:
            excerpt = (response.text or "")[:ERROR_EXCERPT_LIMIT]
            raise WebhookError(
                f"webhook_request_failed ({status}): {excerpt or 'No response body'}",
                status_code=status,
                body=excerpt,
            )
        return response
    raise WebhookRetriesExhausted(
        "webhook_request_failed_after_retries",
        status_code=RATE_LIMITED,
    )


def post_message(
    client: httpx.Client,
    url: str,
    content: str,
    *,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    sleep: Sleep = time.sleep,
) -> httpx.Response:
    """Post a plain text message."""

    body = json.dumps({"content": content}, ensure_ascii=False).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    return post_with_retry(client, url, body, headers, policy=policy, sleep=sleep)


def post_file(
    client: httpx.Client,
    url: str,
    file_path: Path,
    content: str,
    *,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    sleep: Sleep = time.sleep,
) -> httpx.Response:
    """Post ``file_path`` as an attachment with ``content`` as its caption."""

    path = Path(file_path)
    multipart = (
        MultipartBody()
        .add_json("payload_json", {"content": content})
        .add_file("files[0]", path.name, path.read_bytes())
    )
    headers = {"Content-Type": multipart.content_type}
    return post_with_retry(
        client, url, multipart.encode(), headers, policy=policy, sleep=sleep
    )
