"""Project tasks: build, test, format, lint, clean, image and dev server."""

from __future__ import annotations

import shutil
from pathlib import Path

from ..errors import CommandFailed
from ..shared.logging import get_logger
from .shell import CommandResult, CommandRunner

logger = get_logger(__name__)

ENV_FILE = ".env"
ENV_TEMPLATE = ".env.example"


def ensure_env_file(project_dir: Path) -> bool | None:
    """Create .env from .env.example if it does not exist.

    Returns:
        True if created, False if .env already existed, None if there is no
        template to copy.
    """
    env_file = project_dir / ENV_FILE
    template = project_dir / ENV_TEMPLATE
    if env_file.exists():
        return False
    if not template.exists():
        logger.warning("project.env_template_missing", path=str(template))
        return None
    shutil.copyfile(template, env_file)
    logger.info("project.env_created", path=str(env_file))
    return True


class ProjectTasks:
    """Cargo and docker tasks run in the project directory."""

    def __init__(self, runner: CommandRunner, project_dir: Path, image_name: str = "container-engine"):
        """Initialize project tasks.

        Args:
            runner: Command runner.
            project_dir: Project root (where Cargo.toml lives).
            image_name: Tag for `image-build`.
        """
        self.runner = runner
        self.project_dir = project_dir
        self.image_name = image_name

    def _cargo(self, *args: str, env: dict[str, str] | None = None) -> None:
        command = ["cargo", *args]
        result = self.runner.run(command, as_user=True, env=env, cwd=self.project_dir, capture=False)
        self._check(result, f"cargo {args[0]} failed")

    def _check(self, result: CommandResult, message: str) -> None:
        if not result.ok:
            raise CommandFailed(
                message=message,
                command=result.command,
                returncode=result.returncode,
                output=result.output,
            )

    def build(self) -> None:
        self._cargo("build")

    def test(self) -> None:
        self._cargo("test")

    def format(self) -> None:
        self._cargo("fmt")

    def lint(self) -> None:
        self._cargo("clippy", "--", "-D", "warnings")

    def clean(self) -> bool:
        """Remove build artifacts, then prune docker.

        Returns:
            Whether the docker prune succeeded (it is best-effort).
        """
        self._cargo("clean")
        if not self.runner.which("docker"):
            return False
        result = self.runner.run(["docker", "system", "prune", "-f"])
        if not result.ok:
            logger.warning("project.prune_failed", output=result.output)
        return result.ok

    def image_build(self) -> None:
        command = ["docker", "build", "-t", self.image_name, "."]
        result = self.runner.run(command, cwd=self.project_dir, capture=False)
        self._check(result, f"Failed to build image {self.image_name}")

    def run_server(self, env: dict[str, str] | None = None) -> None:
        """Run the application in the foreground (`cargo run`)."""
        self._cargo("run", env=env)
