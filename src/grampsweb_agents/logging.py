"""Structlog-based logging for Gramps Web Agents.

Logs go to stderr; stdout is reserved for tool output.
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Literal

import structlog

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(level: LogLevel | None = None) -> None:
    level = level or os.getenv("GRAMPS_LOG_LEVEL", "WARNING").upper()
    numeric = getattr(logging, level, logging.WARNING)
    logging.basicConfig(format="%(message)s", level=numeric, stream=sys.stderr)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "grampsweb_agents"):
    return structlog.get_logger(name)


# Initialize default config
configure_logging()
