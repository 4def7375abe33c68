"""Database schema migrations through sqlx-cli."""

from __future__ import annotations

from pathlib import Path

from ..errors import MigrationFailed, RemediationFailed
from ..shared.logging import get_logger
from .shell import CommandRunner

logger = get_logger(__name__)

SQLX_INSTALL = [
    "cargo",
    "install",
    "sqlx-cli",
    "--no-default-features",
    "--features",
    "native-tls,postgres",
]


class MigrationRunner:
    """Run sqlx migrations against the configured database.

    sqlx and cargo live in the unprivileged user's home, so every command
    runs as that user.
    """

    def __init__(self, runner: CommandRunner, project_dir: Path, database_url: str):
        self.runner = runner
        self.project_dir = project_dir
        self.database_url = database_url

    @property
    def env(self) -> dict[str, str]:
        return {"DATABASE_URL": self.database_url}

    def migrate(self) -> str:
        """Apply pending migrations.

        Returns:
            The tool's output.

        Raises:
            MigrationFailed: sqlx exited non-zero; its output is kept verbatim.
        """
        command = ["sqlx", "migrate", "run"]
        result = self.runner.run(command, as_user=True, env=self.env, cwd=self.project_dir)
        if not result.ok:
            raise MigrationFailed(
                command=command,
                returncode=result.returncode,
                output=result.output,
            )
        logger.info("migrations.applied")
        return result.output

    def is_current(self) -> bool:
        """Check whether the database answers `sqlx migrate info`."""
        result = self.runner.run(
            ["sqlx", "migrate", "info"], as_user=True, env=self.env, cwd=self.project_dir
        )
        return result.ok

    def prepare_offline(self) -> str:
        """Generate offline query metadata (`cargo sqlx prepare`)."""
        command = ["cargo", "sqlx", "prepare"]
        result = self.runner.run(command, as_user=True, env=self.env, cwd=self.project_dir)
        if not result.ok:
            raise MigrationFailed(
                message="Failed to prepare offline queries",
                hint="Make sure the database is running and migrated: devstack db-up",
                command=command,
                returncode=result.returncode,
                output=result.output,
            )
        return result.output

    def ensure_tool(self) -> bool:
        """Install sqlx-cli when it is not on the user's PATH.

        Returns:
            True if it was installed by this call.
        """
        if self.runner.which("sqlx", as_user=True):
            return False

        logger.info("migrations.install_sqlx")
        result = self.runner.run(SQLX_INSTALL, as_user=True)
        if not result.ok:
            raise RemediationFailed(
                message="Failed to install sqlx-cli",
                command=list(SQLX_INSTALL),
                returncode=result.returncode,
                output=result.output,
            )
        return True
