"""External command execution.

All host interaction goes through ``CommandRunner`` so that identity
switching and logging happen in one place. Commands that cannot be found or
that time out are reported as results, never raised, so callers decide what a
failure means.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..shared.logging import get_logger
from .identity import IdentityContext

logger = get_logger(__name__)

# Conventional shell exit codes
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


@dataclass
class CommandResult:
    """Outcome of an external command."""

    command: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    argv: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stripped."""
        parts = [self.stdout.strip(), self.stderr.strip()]
        return "\n".join(p for p in parts if p)


class CommandRunner:
    """Run external commands, optionally as the unprivileged user."""

    def __init__(self, identity: IdentityContext | None = None, timeout: float | None = None):
        """Initialize runner.

        Args:
            identity: Identity context used for ``as_user`` commands.
            timeout: Default timeout in seconds (None = no timeout).
        """
        self.identity = identity
        self.timeout = timeout

    def which(self, name: str, as_user: bool = False) -> str | None:
        """Locate an executable on the search path.

        With ``as_user`` on an elevated run, the lookup uses the unprivileged
        user's login shell so that ``~/.cargo/bin`` is on the path.
        """
        if not (as_user and self.identity is not None and self.identity.needs_user_switch):
            return shutil.which(name)

        result = self.run(["command", "-v", name], as_user=True, timeout=10)
        lines = result.stdout.strip().splitlines() if result.ok else []
        return lines[-1] if lines else None

    def user_argv(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> list[str]:
        """Wrap a command so it runs as the unprivileged user.

        ``su -`` starts a login shell, so the working directory and the extra
        environment are folded into the command line.
        """
        inner = list(command)
        if env:
            inner = ["env", *[f"{key}={value}" for key, value in env.items()], *inner]
        script = shlex.join(inner)
        if cwd is not None:
            script = f"cd {shlex.quote(str(cwd))} && {script}"
        return ["su", "-", self.identity.unprivileged_user, "-c", script]

    def run(
        self,
        command: Sequence[str],
        *,
        as_user: bool = False,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        input: str | None = None,
        capture: bool = True,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command and return its result.

        Args:
            command: argv to execute.
            as_user: Run as the unprivileged identity.
            env: Extra environment variables.
            cwd: Working directory.
            input: Text passed on stdin.
            capture: Capture stdout/stderr (False streams to the terminal).
            timeout: Per-call timeout overriding the default.

        Returns:
            CommandResult; missing executables yield exit code 127 and
            timeouts exit code 124.
        """
        command = list(command)
        switch_user = as_user and self.identity is not None and self.identity.needs_user_switch

        if switch_user:
            argv = self.user_argv(command, env=env, cwd=cwd)
            run_env = None
            run_cwd = None
        else:
            argv = command
            run_env = {**os.environ, **env} if env else None
            run_cwd = str(cwd) if cwd is not None else None

        logger.debug(
            "command.run",
            command=command,
            as_user=self.identity.unprivileged_user if switch_user else None,
            cwd=str(cwd) if cwd is not None else None,
        )

        try:
            completed = subprocess.run(
                argv,
                capture_output=capture,
                text=True,
                input=input,
                env=run_env,
                cwd=run_cwd,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except FileNotFoundError:
            logger.debug("command.not_found", command=command)
            return CommandResult(
                command, EXIT_NOT_FOUND, stderr=f"{command[0]}: command not found", argv=argv
            )
        except subprocess.TimeoutExpired:
            logger.debug("command.timeout", command=command)
            return CommandResult(command, EXIT_TIMEOUT, stderr="command timed out", argv=argv)

        result = CommandResult(
            command,
            completed.returncode,
            stdout=(completed.stdout or "") if capture else "",
            stderr=(completed.stderr or "") if capture else "",
            argv=argv,
        )
        logger.debug("command.exit", command=command, returncode=result.returncode)
        return result
