"""Structured logging for the deploy daemon.

Webhook ingress, the dispatch worker, and uvicorn's request lines all go
through one stdout handler, as JSON in production or console output when
``debug`` is set.  Each record is stamped with the service name and the
asyncio task that emitted it, so lines from ``dispatch-worker`` (deployment
stages) can be told apart from request handlers.  Child commands inherit
stdout and interleave with these records.
"""

from __future__ import annotations

import asyncio
import logging
import sys

import structlog

_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

# Per-request INFO lines from the notification client
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    *, json_logs: bool = True, log_level: str = "INFO", service: str = "deployhook"
) -> None:
    """Configure structlog and route stdlib, uvicorn and httpx logging through it.

    Args:
        json_logs: Render JSON when *True*, console output otherwise.
        log_level: Root log level name (e.g. ``"INFO"``, ``"DEBUG"``).
        service: Value of the ``service`` key on every record.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _ServiceStamp(service),
        add_task_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info if json_logs else _passthrough,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name in _UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class _ServiceStamp:
    def __init__(self, service: str) -> None:
        self._service = service

    def __call__(
        self, _logger: object, _method: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        event_dict.setdefault("service", self._service)
        return event_dict


def add_task_name(
    _logger: object, _method: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Add the name of the current asyncio task, if any, as ``task``."""
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    if task is not None:
        event_dict.setdefault("task", task.get_name())
    return event_dict


def _passthrough(
    _logger: object, _method: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    # ConsoleRenderer formats exc_info itself
    return event_dict
