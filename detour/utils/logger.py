"""Structured logging utilities for Detour.

All logging goes through structlog. Every log line emitted while a navigation
event is being handled carries that event's ``navigation_id``.
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

import structlog
from structlog.types import EventDict, Processor

from detour.constants import SLOW_DECISION_MS

# Correlation id of the navigation event being handled, if any.
navigation_id_var: ContextVar[Optional[str]] = ContextVar("navigation_id", default=None)


def add_navigation_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add navigation_id to the event when one is bound."""
    navigation_id = navigation_id_var.get()
    if navigation_id:
        event_dict["navigation_id"] = navigation_id
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structlog for the process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON lines when True, coloured console output otherwise.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_navigation_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "detour") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class PerformanceLogger:
    """Time a block; WARNING when it exceeds threshold_ms, DEBUG otherwise."""

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        threshold_ms: float = SLOW_DECISION_MS,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.threshold_ms = threshold_ms
        self.start_time: float = 0

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                f"{self.operation} failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error=str(exc_val),
            )
        elif duration_ms > self.threshold_ms:
            self.logger.warning(
                f"{self.operation} slow",
                operation=self.operation,
                duration_ms=duration_ms,
                threshold_ms=self.threshold_ms,
            )
        else:
            self.logger.debug(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=duration_ms,
            )


@contextmanager
def navigation_context(navigation_id: str) -> Iterator[str]:
    """Bind navigation_id for the duration of one event handler.

    The previous value is restored on exit, so nested or concurrent handlers
    never see each other's id.
    """
    token = navigation_id_var.set(navigation_id)
    try:
        yield navigation_id
    finally:
        navigation_id_var.reset(token)


# Defaults until main.py reconfigures from the environment.
configure_logging()
