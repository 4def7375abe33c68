"""Command decorators.

This module provides the error boundary shared by every `devstack`
command: taxonomy errors become a colored error line plus exit code 1, and a
missing-privilege error re-executes the command through sudo.
"""

import os
import sys
from functools import wraps
from typing import Callable

import click

from .errors import DevstackError, PrivilegeRequired
from .formatters import Reporter
from .shared.logging import get_logger

logger = get_logger(__name__)

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def sudo_argv(argv: list[str]) -> list[str]:
    """Build the argv that re-runs this process elevated, keeping the environment."""
    return ["sudo", "-E", sys.executable, "-m", "devstack_cli", *argv]


def reexec_with_sudo(argv: list[str]) -> None:
    """Replace the current process with its sudo equivalent."""
    command = sudo_argv(argv)
    logger.info("privilege.reexec", argv=command)
    sys.stdout.flush()
    sys.stderr.flush()
    os.execvp(command[0], command)


def handle_errors(func: Callable):
    """Decorator mapping devstack errors onto exit codes.

    Expects ``ctx.obj`` to hold a ``reporter`` and the ``no_sudo`` flag.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = click.get_current_context()
        obj = ctx.obj or {}
        reporter: Reporter = obj.get("reporter") or Reporter()

        try:
            result = func(*args, **kwargs)
        except PrivilegeRequired as e:
            if obj.get("no_sudo") or os.geteuid() == 0:
                reporter.failure(e)
                raise SystemExit(EXIT_FAILURE)
            reporter.warning(f"{e.message}; re-running with sudo")
            reexec_with_sudo(obj.get("argv") or sys.argv[1:])
            raise SystemExit(EXIT_FAILURE)
        except DevstackError as e:
            if not e.fatal:
                reporter.warn(e)
                reporter.print_summary()
                return None
            reporter.failure(e)
            raise SystemExit(EXIT_FAILURE)
        except KeyboardInterrupt:
            reporter.error("Interrupted")
            raise SystemExit(EXIT_INTERRUPTED)

        reporter.print_summary()
        return result

    return wrapper
