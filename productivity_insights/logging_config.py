"""structlog setup for the ``productivity_insights`` logger tree.

Only the package logger gets a handler; the root logger and any handlers
an embedding application installed are left alone.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Optional

import structlog

LEVEL_ENV_VAR = "PRODUCTIVITY_INSIGHTS_LOG_LEVEL"
FORMAT_ENV_VAR = "PRODUCTIVITY_INSIGHTS_LOG_FORMAT"
PACKAGE_LOGGER = "productivity_insights"


def setup_logging(
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Route package log events to ``stream`` (stderr by default).

    ``level`` and ``json_output`` fall back to the environment; calling this
    again replaces the previous handler.
    """
    level = level or os.environ.get(LEVEL_ENV_VAR, "INFO")
    if json_output is None:
        json_output = os.environ.get(FORMAT_ENV_VAR, "").lower() == "json"

    processors: list = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for old in list(package_logger.handlers):
        package_logger.removeHandler(old)
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.propagate = False
    return package_logger


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
