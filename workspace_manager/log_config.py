"""Structlog configuration for the daemon, the CLI and Uvicorn.

Every stdlib record (ours, uvicorn's, asyncio's) is rendered by one
``ProcessorFormatter`` so the log stream has a single format.
"""

from __future__ import annotations

import logging
import logging.config
import sys

import structlog

from workspace_manager.settings import settings

_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_ACCESS_FIELDS = ("client_addr", "method", "path", "http_version", "status_code")


def _uvicorn_access_fields(
    logger: logging.Logger | None, name: str, event_dict: dict
) -> dict:
    """Lift the positional args of a ``uvicorn.access`` record into fields."""
    record = event_dict.get("_record")
    if record is None or record.name != "uvicorn.access":
        return event_dict
    if isinstance(record.args, tuple) and len(record.args) >= len(_ACCESS_FIELDS):
        event_dict.update(zip(_ACCESS_FIELDS, record.args))
        event_dict.pop("http_version", None)
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _handler_config() -> dict[str, dict]:
    """Stderr always; a file too when WORKSPACE_MANAGER_LOG_FILE is set."""
    handlers: dict[str, dict] = {
        "stderr": {
            "class": "logging.StreamHandler",
            "formatter": "structlog",
            "stream": sys.stderr,
        }
    }
    if settings.log_file():
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "structlog",
            "filename": settings.log_file(),
            "encoding": "utf-8",
        }
    return handlers


def configure_logging() -> None:
    """Configure structlog and route stdlib logging through it."""
    level = getattr(logging, settings.log_level(), logging.INFO)
    shared = _shared_processors()

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=_renderer(settings.log_format()),
        foreign_pre_chain=[*shared, _uvicorn_access_fields],
    )
    handlers = _handler_config()
    names = sorted(handlers)
    # Uvicorn installs its own handlers unless its loggers are claimed here.
    uvicorn_loggers = {
        name: {"handlers": names, "level": level, "propagate": False}
        for name in _UVICORN_LOGGERS
    }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"structlog": {"()": lambda: formatter}},
            "handlers": handlers,
            "root": {"handlers": names, "level": level},
            "loggers": uvicorn_loggers,
        }
    )
