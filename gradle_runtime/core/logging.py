"""Logging setup for applications embedding the pipeline.

Library modules only call ``structlog.get_logger("gradle_runtime.<module>")``
and never configure anything on import.
"""

from __future__ import annotations

import logging
import logging.config
import os
from typing import TextIO

import structlog

LOG_FORMATS = ("console", "json")


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_logging(
    level: str | None = None,
    log_format: str | None = None,
    *,
    stream: TextIO | None = None,
) -> None:
    """Route structlog events through stdlib logging to *stream* (default stderr).

    Arguments fall back to the environment:
        GRADLE_RUNTIME_LOG_LEVEL   level for gradle_runtime.* loggers (default: INFO)
        GRADLE_RUNTIME_LOG_FORMAT  console | json (default: console)

    Third-party loggers (httpx, httpcore) stay at WARNING.
    """
    level = (level or os.environ.get("GRADLE_RUNTIME_LOG_LEVEL") or "INFO").upper()
    log_format = (log_format or os.environ.get("GRADLE_RUNTIME_LOG_FORMAT") or "console").lower()
    if log_format not in LOG_FORMATS:
        raise ValueError(f"unknown log format {log_format!r}; expected one of {LOG_FORMATS}")

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler: dict = {"class": "logging.StreamHandler", "formatter": "events"}
    if stream is not None:
        handler["stream"] = stream
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "events": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        _renderer(log_format),
                    ],
                },
            },
            "handlers": {"events": handler},
            "loggers": {
                "gradle_runtime": {"handlers": ["events"], "level": level, "propagate": False},
                "httpx": {"handlers": ["events"], "level": "WARNING", "propagate": False},
                "httpcore": {"handlers": ["events"], "level": "WARNING", "propagate": False},
            },
        }
    )
