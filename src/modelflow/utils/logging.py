"""
Structured logging for modelflow.

Log events go to stderr so that tables printed by the CLI on stdout stay
machine-readable, also before ``configure_logging`` runs. Library modules
obtain loggers with ``get_logger`` at import time; level and format only
change once ``configure_logging`` is called.
"""

import logging
import sys
from typing import Any

import structlog

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Resolve sys.stderr per logger so redirected streams are honoured
    return structlog.PrintLogger(file=sys.stderr)


def use_stderr_default() -> None:
    """Route events to stderr when ``configure_logging`` has not run yet."""
    if not structlog.is_configured():
        structlog.configure(logger_factory=stderr_logger)


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging for a workflow run.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, emit one JSON object per event.

    Raises:
        ValueError: If the level name is unknown.
    """
    if level.upper() not in LEVELS:
        msg = f"Unknown log level '{level}'. Available: {', '.join(LEVELS)}"
        raise ValueError(msg)
    log_level = getattr(logging, level.upper())

    # Third-party libraries log through the standard library
    logging.basicConfig(format="%(message)s", level=log_level)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors: list[structlog.types.Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Module logger; ``name`` is usually ``__name__``."""
    return structlog.get_logger(name)


def log_context(**kwargs: Any) -> structlog.contextvars.bound_contextvars:
    """
    Bind key-value pairs to every event logged inside the block.

    Example:
        with log_context(project="housing-rf"):
            log.info("Split data")  # includes project="housing-rf"
    """
    return structlog.contextvars.bound_contextvars(**kwargs)


use_stderr_default()
