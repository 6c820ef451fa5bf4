"""Formatting and coercion helpers shared by the backup pipeline."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any


_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def format_bytes(value: Any) -> str:
    """Return a human readable size such as ``1.50 MB``.

    Non-numeric and negative values render as ``0 B``.
    """

    try:
        size = float(value)
    except (TypeError, ValueError):
        return "0 B"
    if not math.isfinite(size) or size < 0:
        return "0 B"
    unit_index = 0
    while size >= 1024 and unit_index < len(_SIZE_UNITS) - 1:
        size /= 1024
        unit_index += 1
    decimals = 0 if unit_index == 0 else 2
    return f"{size:.{decimals}f} {_SIZE_UNITS[unit_index]}"


def normalize_number(value: Any) -> int | float:
    """Coerce ``value`` to a finite number, falling back to ``0``."""

    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    if number.is_integer():
        return int(number)
    return number


def parse_boolean(value: Any, fallback: bool = False) -> bool:
    """Interpret common textual flags (``yes``/``off``/``1``...)."""

    if isinstance(value, bool):
        return value
    if value is None or value == "":
        return fallback
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return fallback


def format_timestamp(moment: datetime | None = None) -> str:
    """Return a filesystem safe UTC timestamp, e.g. ``2024-01-05T03-30-00-000Z``."""

    current = moment or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    iso = current.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    iso = iso.replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")
