"""Logging configuration for the backup runner.

Library modules only call :func:`get_logger`; the command line entrypoint
calls :func:`configure_logging` once at start-up.
"""

from __future__ import annotations

import json
import logging
from functools import partial

import structlog

get_logger = structlog.get_logger


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure stdlib logging and structlog JSON output."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(
                serializer=partial(json.dumps, ensure_ascii=False)
            ),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
