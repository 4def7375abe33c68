"""Unit tests for bootstrap project module."""

from __future__ import annotations

from pathlib import Path

import pytest

from devstack_cli.bootstrap import ProjectTasks, ensure_env_file
from devstack_cli.errors import CommandFailed


class TestEnsureEnvFile:
    """Tests for .env creation."""

    def test_created_from_template(self, project_dir: Path):
        assert ensure_env_file(project_dir) is True
        assert (project_dir / ".env").read_text() == (project_dir / ".env.example").read_text()

    def test_existing_env_never_overwritten(self, project_dir: Path):
        (project_dir / ".env").write_text("DATABASE_URL=custom\n")

        assert ensure_env_file(project_dir) is False
        assert (project_dir / ".env").read_text() == "DATABASE_URL=custom\n"

    def test_missing_template(self, tmp_path: Path):
        assert ensure_env_file(tmp_path) is None
        assert not (tmp_path / ".env").exists()


class TestProjectTasks:
    """Tests for cargo and docker tasks."""

    @pytest.fixture
    def tasks(self, fake_runner, tmp_path: Path):
        return ProjectTasks(fake_runner, tmp_path)

    @pytest.mark.parametrize(
        "method,command",
        [
            ("build", ["cargo", "build"]),
            ("test", ["cargo", "test"]),
            ("format", ["cargo", "fmt"]),
            ("lint", ["cargo", "clippy", "--", "-D", "warnings"]),
        ],
    )
    def test_cargo_tasks(self, tasks, fake_runner, tmp_path: Path, method, command):
        getattr(tasks, method)()

        assert fake_runner.commands == [command]
        assert fake_runner.calls[0].as_user is True
        assert fake_runner.calls[0].cwd == tmp_path

    def test_cargo_failure(self, tasks, fake_runner):
        fake_runner.on("cargo", "clippy", returncode=101)

        with pytest.raises(CommandFailed) as exc_info:
            tasks.lint()

        assert exc_info.value.returncode == 101

    def test_clean_prunes_docker(self, tasks, fake_runner):
        fake_runner.executables.add("docker")

        assert tasks.clean() is True
        assert fake_runner.commands == [["cargo", "clean"], ["docker", "system", "prune", "-f"]]

    def test_clean_prune_is_best_effort(self, tasks, fake_runner):
        fake_runner.executables.add("docker")
        fake_runner.on("docker", "system", "prune", returncode=1)

        assert tasks.clean() is False

    def test_clean_without_docker(self, tasks, fake_runner):
        assert tasks.clean() is False
        assert fake_runner.commands == [["cargo", "clean"]]

    def test_image_build(self, fake_runner, tmp_path: Path):
        ProjectTasks(fake_runner, tmp_path, image_name="engine:dev").image_build()
        assert fake_runner.commands == [["docker", "build", "-t", "engine:dev", "."]]

    def test_run_server_passes_env(self, tasks, fake_runner):
        tasks.run_server(env={"DATABASE_URL": "postgresql://db"})

        call = fake_runner.calls[0]
        assert call.command == ["cargo", "run"]
        assert call.env == {"DATABASE_URL": "postgresql://db"}
