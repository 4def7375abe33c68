"""Logging configuration for devstack-cli.

User-facing progress lines go through ``formatters.Reporter`` on stdout.
structlog carries the diagnostic trail (commands run, exit codes, identity
switches) on stderr, silent below WARNING unless -v is given.
"""

import logging
import sys
from typing import TextIO

import structlog

LEVELS = ("debug", "info", "warning", "error", "critical")


def verbosity_to_level(verbose: int, default: str = "warning") -> str:
    """Map a repeated -v count onto a log level name."""
    if verbose >= 2:
        return "debug"
    if verbose == 1:
        return "info"
    return default if default in LEVELS else "warning"


def configure_logging(level: str = "warning", stream: TextIO | None = None) -> None:
    """Route structlog through stdlib logging at ``level``.

    Args:
        level: One of LEVELS; unknown names fall back to warning.
        stream: Destination (default: sys.stderr). Colors are used only
               when it is a terminal.
    """
    stream = stream or sys.stderr
    log_level = getattr(logging, level.upper(), logging.WARNING)

    handler = logging.StreamHandler(stream)
    handler.setLevel(log_level)
    logging.basicConfig(level=log_level, handlers=[handler], format="%(message)s", force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=stream.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
