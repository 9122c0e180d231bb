"""Structured logging configuration: structlog + stdlib logging."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog


class LoggingSetupError(ValueError):
    pass


def setup_logging(level: str | None = None) -> None:
    """Configure structlog and stdlib logging.

    Logs go to stderr; stdout belongs to the progress bar.

    Reads from environment variables:
        SCAFFOLDER_LOG_LEVEL  (default: WARNING, overridden by `level`)
        SCAFFOLDER_LOG_FORMAT console | json (default: console)
    """
    log_level = (level or os.environ.get("SCAFFOLDER_LOG_LEVEL", "WARNING")).upper()
    log_format = os.environ.get("SCAFFOLDER_LOG_FORMAT", "console").lower()
    if not isinstance(logging.getLevelName(log_level), int):
        raise LoggingSetupError(f"Unknown log level: {log_level}")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared_processors,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": log_level,
            },
            "loggers": {
                "scaffolder": {"level": log_level},
            },
        }
    )
