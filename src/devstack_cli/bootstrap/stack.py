"""Backing service management.

This module provides compose-driven lifecycle management for the database
and cache containers including start, stop, status, readiness and reset,
plus the full application stack up/down.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..errors import (
    ContainerEngineUnavailable,
    DockerComposeUnavailable,
    ServiceCommandFailed,
    ServiceReadinessTimeout,
    VolumeRemovalFailed,
)
from ..shared.logging import get_logger
from .health import ReadinessPoller, ReadinessProbe
from .migrations import MigrationRunner
from .prerequisites import docker_daemon_running
from .shell import CommandResult, CommandRunner

logger = get_logger(__name__)


@dataclass(frozen=True)
class ServiceSpec:
    """A backing service managed through compose."""

    name: str
    volume: str
    probe: tuple[str, ...]


DEFAULT_SERVICES = (
    ServiceSpec("postgres", "postgres_data", ("pg_isready", "-U", "postgres")),
    ServiceSpec("redis", "redis_data", ("redis-cli", "ping")),
)


class StackState(Enum):
    """State of the compose services."""

    STOPPED = "stopped"  # No service running
    PARTIAL = "partial"  # Some services running
    RUNNING = "running"  # All services running


@dataclass
class StackStatus:
    """Status of the compose services."""

    state: StackState
    running_services: list[str] = field(default_factory=list)
    stopped_services: list[str] = field(default_factory=list)
    message: str = ""


@dataclass
class ResetResult:
    """Outcome of a service reset."""

    removed_volumes: list[str] = field(default_factory=list)
    absent_volumes: list[str] = field(default_factory=list)
    warnings: list[ServiceReadinessTimeout] = field(default_factory=list)


def detect_compose_command(runner: CommandRunner) -> list[str]:
    """Pick the compose backend.

    Returns:
        ["docker", "compose"] when the plugin answers, else ["docker-compose"].

    Raises:
        DockerComposeUnavailable: Neither is available.
    """
    if runner.which("docker") and runner.run(["docker", "compose", "version"], timeout=10).ok:
        return ["docker", "compose"]
    if runner.which("docker-compose"):
        return ["docker-compose"]
    raise DockerComposeUnavailable()


def parse_ps_output(output: str) -> list[dict]:
    """Parse `compose ps --format json` output.

    Newer compose releases print one JSON object per line; older ones print
    a single JSON array.
    """
    output = output.strip()
    if not output:
        return []
    if output.startswith("["):
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            return []
        return [item for item in data if isinstance(item, dict)]

    services = []
    for line in output.splitlines():
        if line.strip():
            try:
                services.append(json.loads(line))
            except json.JSONDecodeError:
                pass
    return services


class ServiceManager:
    """Manage the compose-defined backing services."""

    def __init__(
        self,
        runner: CommandRunner,
        project_dir: Path,
        compose_project: str,
        poller: ReadinessPoller | None = None,
        migrations: MigrationRunner | None = None,
        services: Sequence[ServiceSpec] = DEFAULT_SERVICES,
    ):
        """Initialize service manager.

        Args:
            runner: Command runner.
            project_dir: Directory containing the compose file.
            compose_project: Compose project name (prefix of volume names).
            poller: Readiness poller (default: ReadinessPoller()).
            migrations: Migration runner used after a reset.
            services: Managed backing services.
        """
        self.runner = runner
        self.project_dir = project_dir
        self.compose_project = compose_project
        self.poller = poller or ReadinessPoller()
        self.migrations = migrations
        self.services = {spec.name: spec for spec in services}
        self._compose_command: list[str] | None = None

    @property
    def compose_command(self) -> list[str]:
        if self._compose_command is None:
            self._compose_command = detect_compose_command(self.runner)
        return self._compose_command

    def volume_name(self, spec: ServiceSpec) -> str:
        return f"{self.compose_project}_{spec.volume}"

    def _select(self, services: Sequence[str] | None) -> list[ServiceSpec]:
        if services is None:
            return list(self.services.values())
        unknown = [name for name in services if name not in self.services]
        if unknown:
            raise ValueError(f"Unknown services: {', '.join(unknown)}")
        return [self.services[name] for name in services]

    def _compose(self, *args: str, capture: bool = True) -> CommandResult:
        command = [*self.compose_command, "-p", self.compose_project, *args]
        return self.runner.run(command, cwd=self.project_dir, capture=capture)

    def _check(self, result: CommandResult, message: str) -> None:
        if not result.ok:
            raise ServiceCommandFailed(
                message=message,
                command=result.command,
                returncode=result.returncode,
                output=result.output,
            )

    def up(self, services: Sequence[str] | None = None) -> list[str]:
        """Start services in the background.

        Returns:
            Names of the started services.

        Raises:
            ContainerEngineUnavailable: Docker daemon not reachable.
            ServiceCommandFailed: compose up failed.
        """
        names = [spec.name for spec in self._select(services)]
        if not docker_daemon_running(self.runner):
            raise ContainerEngineUnavailable()

        logger.info("services.up", services=names)
        self._check(self._compose("up", "-d", *names), f"Failed to start {', '.join(names)}")
        return names

    def down(self, services: Sequence[str] | None = None) -> list[str]:
        """Stop services, keeping containers and volumes."""
        names = [spec.name for spec in self._select(services)]
        logger.info("services.stop", services=names)
        self._check(self._compose("stop", *names), f"Failed to stop {', '.join(names)}")
        return names

    def status(self) -> StackStatus:
        """Get current service status.

        Returns:
            StackStatus with running and stopped service names.
        """
        result = self._compose("ps", "--all", "--format", "json")
        if not result.ok:
            return StackStatus(
                StackState.STOPPED,
                message=result.stderr.strip() or "Services not running",
            )

        services = parse_ps_output(result.stdout)
        if not services:
            return StackStatus(StackState.STOPPED, message="No services found")

        running = [
            s.get("Service", s.get("Name", "unknown"))
            for s in services
            if s.get("State") == "running"
        ]
        stopped = [
            s.get("Service", s.get("Name", "unknown"))
            for s in services
            if s.get("State") != "running"
        ]

        if len(running) == 0:
            state = StackState.STOPPED
        elif len(stopped) == 0:
            state = StackState.RUNNING
        else:
            state = StackState.PARTIAL

        return StackStatus(state, running, stopped)

    def is_running(self, service: str) -> bool:
        return service in self.status().running_services

    def probe(self, spec: ServiceSpec) -> ReadinessProbe:
        """Build a readiness probe that runs inside the service container."""

        def check() -> tuple[bool, str | None]:
            result = self._compose("exec", "-T", spec.name, *spec.probe)
            return result.ok, None if result.ok else (result.output or f"exit {result.returncode}")

        return check

    def wait_ready(self, services: Sequence[str] | None = None) -> list[ServiceReadinessTimeout]:
        """Wait for services to answer their readiness probes.

        Returns:
            A warning for each service that never became ready.
        """
        specs = self._select(services)
        self.poller.settle()

        warnings = []
        for spec in specs:
            result = self.poller.wait(self.probe(spec))
            if result.ready:
                logger.info("services.ready", service=spec.name, attempts=result.attempts)
                continue
            logger.warning("services.not_ready", service=spec.name, error=result.error)
            warnings.append(
                ServiceReadinessTimeout(
                    message=f"{spec.name} might not be ready yet",
                    hint=result.error,
                    service=spec.name,
                )
            )
        return warnings

    def remove_volume(self, name: str) -> bool:
        """Remove a named volume.

        Returns:
            True if removed, False if it did not exist.

        Raises:
            VolumeRemovalFailed: Removal failed for another reason.
        """
        command = ["docker", "volume", "rm", name]
        result = self.runner.run(command)
        if result.ok:
            return True
        if "no such volume" in result.output.lower():
            logger.info("services.volume_absent", volume=name)
            return False
        raise VolumeRemovalFailed(
            message=f"Failed to remove volume {name}",
            command=command,
            returncode=result.returncode,
            output=result.output,
        )

    def reset(self, services: Sequence[str] | None = None) -> ResetResult:
        """Recreate services with empty volumes and re-run migrations.

        Containers are always removed before their volumes.

        Returns:
            ResetResult listing removed volumes and readiness warnings.
        """
        specs = self._select(services)
        names = [spec.name for spec in specs]
        reset = ResetResult()

        self.down(names)
        self._check(
            self._compose("rm", "-f", *names),
            f"Failed to remove containers for {', '.join(names)}",
        )

        for spec in specs:
            volume = self.volume_name(spec)
            if self.remove_volume(volume):
                reset.removed_volumes.append(volume)
            else:
                reset.absent_volumes.append(volume)

        self.up(names)
        reset.warnings = self.wait_ready(names)
        if self.migrations is not None:
            self.migrations.migrate()
        return reset

    def stack_up(self) -> None:
        """Build and run the full application stack in the foreground."""
        if not docker_daemon_running(self.runner):
            raise ContainerEngineUnavailable()
        self._check(self._compose("up", "--build", capture=False), "Failed to run the application stack")

    def stack_down(self) -> None:
        """Stop and remove the full application stack."""
        self._check(self._compose("down"), "Failed to stop the application stack")
