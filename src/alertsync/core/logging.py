"""
Structured logging for alertsync.

Manifesto:
    A reconciler runs unattended, and the only record of why a resource is
    stuck is in the logs and in the resource's status. Logs are therefore
    structured and always carry the identity being reconciled.

    - **Identity:** kind/namespace/name bound for the whole reconcile
    - **Machine-readable:** JSON lines with ECS-style keys for aggregation
    - **Readable:** colored console lines when attached to a terminal

Architecture:
    ::

        get_logger(__name__).info("condition_deleted", condition_id=7)
          │
          ├─ merge_contextvars      (LogContext / bind_context values)
          ├─ timestamp, level, logger name
          ├─ service.name
          ├─ ECS key renames         (JSON only)
          └─ JSONRenderer | ConsoleRenderer
                │
                └─ stdlib "alertsync" logger → stderr

    stdout stays free for CLI output (``alertsync get --json``).

Examples:
    >>> from alertsync.core.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", json_format=True)
    >>> get_logger(__name__).info("reconcile_started", kind="AlertPolicy", name="cpu")

Tags:
    logging, structlog, observability, alertsync
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

ROOT_LOGGER = "alertsync"

# ECS field names for the keys structlog produces.
_ECS_RENAMES = {"timestamp": "@timestamp", "level": "log.level"}

_handler: logging.Handler | None = None


def _service_stamper(service: str) -> Callable[[WrappedLogger, str, EventDict], EventDict]:
    def stamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", service)
        return event_dict

    return stamp


def _rename_ecs_keys(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key, renamed in _ECS_RENAMES.items():
        if key in event_dict:
            event_dict[renamed] = event_dict.pop(key)
    return event_dict


def _processors(service: str, json_format: bool) -> list[Processor]:
    chain: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _service_stamper(service),
    ]
    if json_format:
        chain += [
            _rename_ecs_keys,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return chain


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "alertsync",
) -> None:
    """Configure structlog and the stdlib ``alertsync`` logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        json_format: JSON lines if True, console if False, auto (JSON unless
            stderr is a terminal) if None
        service: Value of ``service.name`` on every event
    """
    global _handler

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")
    if json_format is None:
        json_format = not sys.stderr.isatty()

    structlog.configure(
        processors=_processors(service, json_format),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger(ROOT_LOGGER)
    if _handler is not None:
        root.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(_handler)
    root.setLevel(numeric_level)


def get_logger(name: str | None = None) -> Any:
    """Structured logger, usually ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**values: Any) -> None:
    structlog.contextvars.bind_contextvars(**values)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Binds values for the duration of a ``with`` block.

    Values bound outside the block are restored on exit, so nested
    contexts compose.

    Example:
        with LogContext(kind="AlertPolicy", namespace="default", name="cpu"):
            logger.info("reconcile_started")
    """

    def __init__(self, **values: Any):
        self._values = values
        self._scope: Any = None

    def __enter__(self) -> LogContext:
        self._scope = structlog.contextvars.bound_contextvars(**self._values)
        self._scope.__enter__()
        return self

    def __exit__(self, *exc: Any) -> None:
        self._scope.__exit__(*exc)
        self._scope = None


__all__ = [
    "ROOT_LOGGER",
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
]
