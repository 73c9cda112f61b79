"""Logging setup — structlog rendering on top of stdlib logging."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog

_ENV_LOG_LEVEL = "FAULTLINE_LOG_LEVEL"
_ENV_LOG_FORMAT = "FAULTLINE_LOG_FORMAT"


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    if log_format != "console":
        raise ValueError(f"{_ENV_LOG_FORMAT} must be 'console' or 'json', got {log_format!r}")
    return structlog.dev.ConsoleRenderer()


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Route structlog and stdlib records through one handler on stdout.

    Arguments override the environment:
        FAULTLINE_LOG_LEVEL  — default INFO
        FAULTLINE_LOG_FORMAT — console | json, default console
    """
    level = (level or os.environ.get(_ENV_LOG_LEVEL, "INFO")).upper()
    log_format = (log_format or os.environ.get(_ENV_LOG_FORMAT, "console")).lower()
    renderer = _renderer(log_format)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
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
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "structlog",
                },
            },
            "root": {"handlers": ["stdout"], "level": level},
            "loggers": {
                "faultline": {"level": level},
                "uvicorn.access": {"level": "WARNING"},
                "sqlalchemy.engine": {"level": "WARNING"},
                "sqlalchemy.pool": {"level": "WARNING"},
            },
        }
    )
