"""Structured logging setup.

Uses structlog. Hosts bind their name so every composition event can be
traced back to the host that emitted it.
"""

import logging
import sys
from contextlib import AbstractContextManager
from typing import Any, Mapping

import structlog
from structlog.types import Processor


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON; otherwise, use colored console output
    """
    level = getattr(logging, log_level.upper())

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        renderer: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=[*shared_processors, *renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a logger, optionally bound to initial context.

    Args:
        name: Logger name (typically module name)
        **initial_context: Values bound to every event from this logger
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def request_context(request_id: str, method: str) -> AbstractContextManager[Mapping[str, Any]]:
    """Bind the request being dispatched to every log event inside the block.

    Previous values are restored on exit, so nested dispatches through
    in-process sessions keep the outer request's context intact.
    """
    return structlog.contextvars.bound_contextvars(request_id=request_id, method=method)
