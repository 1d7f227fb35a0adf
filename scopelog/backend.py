"""structlog + stdlib logging backend.

Records flow through a structlog processor chain and are handed to a dedicated
stdlib logger whose handlers render them: one console handler (pretty or JSON)
and an optional NDJSON file handler.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO, Any, Literal

import structlog

from scopelog.serializers import err_to_exc_info, serialize_known_fields


LogFormat = Literal["pretty", "json"]
LOG_FORMATS: tuple[str, ...] = ("pretty", "json")

DEFAULT_LOGGER_NAME = "scopelog"


def _shared_processors() -> list[Any]:
    return [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _json_formatter(foreign_pre_chain: list[Any]) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            serialize_known_fields,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=foreign_pre_chain,
    )


def _pretty_formatter(foreign_pre_chain: list[Any]) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            # Exceptions print as a traceback below the line, not as a dict.
            err_to_exc_info,
            serialize_known_fields,
            structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback),
        ],
        foreign_pre_chain=foreign_pre_chain,
    )


def configure_backend(
    format: LogFormat = "pretty",
    file: str | Path | None = None,
    stream: IO[str] | None = None,
    name: str = DEFAULT_LOGGER_NAME,
) -> structlog.stdlib.BoundLogger:
    """Build the handlers for ``name`` and return a structlog logger over it.

    Replaces (and closes) any handlers from a previous call, so calling it
    again reconfigures the same stdlib logger. Raises ``OSError`` if the log
    file or its directory cannot be created.
    """

    if format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format {format!r}; expected one of {LOG_FORMATS}")

    # Stdlib records from child loggers of `name` get the same fields.
    foreign_pre_chain: list[Any] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    handlers: list[logging.Handler] = []

    console = logging.StreamHandler(stream if stream is not None else sys.stdout)
    console.setFormatter(
        _pretty_formatter(foreign_pre_chain) if format == "pretty" else _json_formatter(foreign_pre_chain)
    )
    handlers.append(console)

    if file:
        dest = Path(file).resolve()
        dest.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(dest, encoding="utf-8")
        file_handler.setFormatter(_json_formatter(foreign_pre_chain))
        handlers.append(file_handler)

    stdlib_logger = logging.getLogger(name)
    for old in stdlib_logger.handlers:
        old.close()
    stdlib_logger.handlers = handlers
    stdlib_logger.propagate = False
    # Threshold checks happen in StructLogger; the backend passes everything.
    stdlib_logger.setLevel(logging.DEBUG)

    return structlog.wrap_logger(
        stdlib_logger,
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
    )
