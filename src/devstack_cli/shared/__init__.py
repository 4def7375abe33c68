"""Shared modules for devstack-cli."""

from .logging import configure_logging, get_logger, verbosity_to_level

__all__ = [
    "configure_logging",
    "get_logger",
    "verbosity_to_level",
]
