"""Structured logging setup for kube-e2e.

All modules log through ``structlog.get_logger(__name__)`` with dotted event
names (``cleanup.action_failed``, ``framework.connected``). This module only
configures how those events are rendered.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # sys.stderr is resolved per logger, not at configure time
    return structlog.PrintLogger(sys.stderr)


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog rendering and level filtering.

    Args:
        log_level: Minimum level to emit (DEBUG, INFO, WARNING, ERROR,
            CRITICAL).
        json_output: Render events as JSON lines instead of console format.

    Raises:
        ValueError: If the level name is unknown.

    Examples:
        >>> configure_logging(log_level="DEBUG")
        >>> structlog.get_logger().info("configured")
    """
    level_name = log_level.upper()
    if level_name not in LOG_LEVELS:
        msg = f"Unknown log level '{log_level}', expected one of {LOG_LEVELS}"
        raise ValueError(msg)

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name)),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


__all__ = ["LOG_LEVELS", "configure_logging"]
