"""Logging configuration for the jobstream gateway.

Modules log through stdlib loggers with dotted event names and ``extra``
fields. The root handler renders those records with structlog so that the
extras and the per-request context variables land in one JSON line.
"""

from __future__ import annotations

import logging

import structlog

_SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
]


def build_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Return the JSON formatter used for every stdlib log record."""

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*_SHARED_PROCESSORS, structlog.stdlib.ExtraAdder()],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ],
    )


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure stdlib logging and structlog JSON rendering."""
    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter())
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_request_context(**values: object) -> None:
    """Attach per-request values to every log event of this task."""

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


__all__ = ["bind_request_context", "build_formatter", "configure_logging"]
