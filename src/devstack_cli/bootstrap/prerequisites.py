"""Prerequisite detection for the development environment.

This module holds the flat dependency registry: each dependency has a probe
that inspects the live host and classifies it as present, present but
unhealthy, or missing. Probes never raise; failures become report entries.
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from ..errors import MissingRequiredDependency
from ..shared.logging import get_logger
from .shell import CommandRunner

logger = get_logger(__name__)


class DependencyKind(Enum):
    """Kinds of dependency; the installer dispatches on these."""

    TOOLCHAIN = "toolchain"
    CONTAINER_ENGINE = "container-engine"
    COMPOSE = "compose"
    CLUSTER_CLIENT = "cluster-client"
    CLUSTER_RUNTIME = "cluster-runtime"
    VCS = "vcs"
    OPTIONAL_UTILITY = "optional-utility"


class DependencyStatus(Enum):
    """Probe outcome."""

    PRESENT = "present"
    UNHEALTHY = "unhealthy"  # Installed, but its service is not reachable
    MISSING = "missing"


@dataclass(frozen=True)
class ProbeResult:
    """Result of probing one dependency."""

    status: DependencyStatus
    version: str | None = None
    detail: str | None = None


Probe = Callable[[CommandRunner], ProbeResult]


@dataclass(frozen=True)
class Dependency:
    """A named external tool or service."""

    name: str
    kind: DependencyKind
    probe: Probe = field(compare=False, repr=False)
    required: bool = True
    require_healthy: bool = False
    packages: tuple[str, ...] = ()

    @property
    def package_names(self) -> tuple[str, ...]:
        return self.packages or (self.name,)


@dataclass(frozen=True)
class DependencyCheck:
    """A dependency paired with its probe result."""

    dependency: Dependency
    result: ProbeResult

    @property
    def name(self) -> str:
        return self.dependency.name


@dataclass
class ReconciliationReport:
    """Classification of every registered dependency."""

    present: list[DependencyCheck] = field(default_factory=list)
    unhealthy: list[DependencyCheck] = field(default_factory=list)
    missing_required: list[DependencyCheck] = field(default_factory=list)
    missing_optional: list[DependencyCheck] = field(default_factory=list)

    @property
    def gaps(self) -> list[DependencyCheck]:
        """Checks that block dependent operations."""
        blocking_unhealthy = [c for c in self.unhealthy if c.dependency.require_healthy]
        return self.missing_required + blocking_unhealthy

    @property
    def ok(self) -> bool:
        return not self.gaps

    def names(self, checks: Iterable[DependencyCheck]) -> list[str]:
        return [c.name for c in checks]

    def raise_for_gaps(self) -> None:
        """Raise one aggregate error listing every blocking gap."""
        if self.gaps:
            raise MissingRequiredDependency(missing=self.names(self.gaps))


class DependencyRegistry:
    """Flat registry of dependencies."""

    def __init__(self, dependencies: Iterable[Dependency] = ()):
        self._dependencies: dict[str, Dependency] = {}
        for dependency in dependencies:
            self.register(dependency)

    def register(self, dependency: Dependency) -> None:
        if dependency.name in self._dependencies:
            raise ValueError(f"Dependency already registered: {dependency.name}")
        self._dependencies[dependency.name] = dependency

    def __iter__(self):
        return iter(self._dependencies.values())

    def __len__(self) -> int:
        return len(self._dependencies)

    def get(self, name: str) -> Dependency | None:
        return self._dependencies.get(name)

    def check(self, runner: CommandRunner) -> ReconciliationReport:
        """Probe every dependency and build a report.

        Never short-circuits: a run always reports the complete gap list.
        """
        report = ReconciliationReport()
        for dependency in self._dependencies.values():
            result = self._probe(dependency, runner)
            check = DependencyCheck(dependency, result)

            if result.status == DependencyStatus.PRESENT:
                report.present.append(check)
            elif result.status == DependencyStatus.UNHEALTHY:
                report.unhealthy.append(check)
            elif dependency.required:
                report.missing_required.append(check)
            else:
                report.missing_optional.append(check)

        logger.info(
            "prerequisites.checked",
            present=report.names(report.present),
            unhealthy=report.names(report.unhealthy),
            missing_required=report.names(report.missing_required),
            missing_optional=report.names(report.missing_optional),
        )
        return report

    def _probe(self, dependency: Dependency, runner: CommandRunner) -> ProbeResult:
        try:
            return dependency.probe(runner)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("prerequisites.probe_failed", dependency=dependency.name, error=str(e))
            return ProbeResult(DependencyStatus.MISSING, detail=str(e))


# =============================================================================
# Probes
# =============================================================================


def _first_line(text: str) -> str | None:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return None


def executable_probe(
    *names: str,
    version_args: tuple[str, ...] = ("--version",),
    as_user: bool = False,
) -> Probe:
    """Probe requiring every named executable, reporting the first one's version.

    ``as_user`` looks the executables up in the unprivileged user's
    environment (tools installed under their home directory).
    """

    def probe(runner: CommandRunner) -> ProbeResult:
        missing = [name for name in names if not runner.which(name, as_user=as_user)]
        if missing:
            return ProbeResult(DependencyStatus.MISSING, detail=f"{', '.join(missing)} not found")
        result = runner.run([names[0], *version_args], as_user=as_user, timeout=10)
        version = _first_line(result.stdout) if result.ok else None
        return ProbeResult(DependencyStatus.PRESENT, version=version)

    return probe


def docker_daemon_running(runner: CommandRunner) -> bool:
    """Check whether the docker daemon answers."""
    if runner.run(["docker", "info"], timeout=10).ok:
        return True
    return runner.run(["systemctl", "is-active", "--quiet", "docker"], timeout=10).ok


def docker_probe(runner: CommandRunner) -> ProbeResult:
    """Docker binary plus daemon health."""
    if not runner.which("docker"):
        return ProbeResult(
            DependencyStatus.MISSING,
            detail="Docker not found. Install Docker: https://docs.docker.com/get-docker/",
        )
    version_result = runner.run(["docker", "--version"], timeout=10)
    version = _first_line(version_result.stdout) if version_result.ok else None

    if not docker_daemon_running(runner):
        return ProbeResult(
            DependencyStatus.UNHEALTHY,
            version=version,
            detail="Docker daemon is not running",
        )
    return ProbeResult(DependencyStatus.PRESENT, version=version)


def compose_probe(runner: CommandRunner) -> ProbeResult:
    """Compose plugin (`docker compose`) or the legacy `docker-compose` binary."""
    if runner.which("docker"):
        result = runner.run(["docker", "compose", "version"], timeout=10)
        if result.ok:
            return ProbeResult(DependencyStatus.PRESENT, version=_first_line(result.stdout))

    if runner.which("docker-compose"):
        result = runner.run(["docker-compose", "--version"], timeout=10)
        return ProbeResult(
            DependencyStatus.PRESENT,
            version=_first_line(result.stdout) if result.ok else None,
        )

    return ProbeResult(DependencyStatus.MISSING, detail="Docker Compose not found")


def minikube_probe(runner: CommandRunner) -> ProbeResult:
    if not runner.which("minikube"):
        return ProbeResult(DependencyStatus.MISSING, detail="Minikube not found")
    result = runner.run(["minikube", "version", "--short"], timeout=10)
    return ProbeResult(
        DependencyStatus.PRESENT,
        version=_first_line(result.stdout) if result.ok else None,
    )


def kubectl_probe(runner: CommandRunner) -> ProbeResult:
    if not runner.which("kubectl"):
        return ProbeResult(
            DependencyStatus.MISSING,
            detail="kubectl not found. Install kubectl: https://kubernetes.io/docs/tasks/tools/",
        )
    result = runner.run(["kubectl", "version", "--client"], timeout=10)
    return ProbeResult(
        DependencyStatus.PRESENT,
        version=_first_line(result.stdout) if result.ok else None,
    )


# =============================================================================
# Registries
# =============================================================================


def docker_dependency(require_healthy: bool = False) -> Dependency:
    return Dependency(
        "docker",
        DependencyKind.CONTAINER_ENGINE,
        docker_probe,
        require_healthy=require_healthy,
    )


def default_registry() -> DependencyRegistry:
    """Dependencies checked by `check` and `setup`."""
    return DependencyRegistry(
        [
            Dependency(
                "rust",
                DependencyKind.TOOLCHAIN,
                executable_probe("rustc", "cargo", as_user=True),
            ),
            docker_dependency(),
            Dependency("docker-compose", DependencyKind.COMPOSE, compose_probe),
            Dependency("git", DependencyKind.VCS, executable_probe("git")),
            Dependency(
                "curl",
                DependencyKind.OPTIONAL_UTILITY,
                executable_probe("curl"),
                required=False,
            ),
        ]
    )


def cluster_registry() -> DependencyRegistry:
    """Dependencies checked by `check-cluster-deps` and `install-cluster-runtime`."""
    return DependencyRegistry(
        [
            Dependency("minikube", DependencyKind.CLUSTER_RUNTIME, minikube_probe),
            Dependency("kubectl", DependencyKind.CLUSTER_CLIENT, kubectl_probe),
            docker_dependency(require_healthy=True),
        ]
    )
