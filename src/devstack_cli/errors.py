"""Error taxonomy for devstack-cli.

Every error carries a human-readable message and an optional hint. Errors
with ``fatal=False`` are warnings: callers collect and report them without
stopping the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class DevstackError(Exception):
    """Base error class for devstack errors."""

    message: str
    hint: str | None = None
    fatal: bool = True

    def __str__(self) -> str:
        return self.message


@dataclass
class UnresolvedOS(DevstackError):
    """Host identification data is absent or unparsable."""

    message: str = "Cannot determine OS"
    hint: str | None = "Expected a readable /etc/os-release with a NAME entry"


@dataclass
class UnsupportedPlatform(DevstackError):
    """No remediation recipe exists for this host."""

    message: str = "Unsupported operating system"
    hint: str | None = (
        "Please install manually: Rust (https://rustup.rs/), "
        "Docker (https://docs.docker.com/get-docker/), "
        "Git (https://git-scm.com/downloads)"
    )


@dataclass
class PrivilegeRequired(DevstackError):
    """A system-level step needs an elevated identity."""

    message: str = "Administrator privileges are required"
    hint: str | None = "Re-run the command with sudo"


@dataclass
class MissingRequiredDependency(DevstackError):
    """Aggregate of every required dependency that is missing or unhealthy."""

    message: str = "Missing required dependencies"
    missing: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.missing and self.message == "Missing required dependencies":
            self.message = f"Missing required dependencies: {' '.join(self.missing)}"


@dataclass
class MissingOptionalDependency(DevstackError):
    """An optional dependency is absent; non-blocking."""

    message: str = "Optional dependency not found"
    fatal: bool = False


@dataclass
class CommandFailed(DevstackError):
    """An external command exited non-zero."""

    message: str = "Command failed"
    command: list[str] = field(default_factory=list)
    returncode: int | None = None
    output: str = ""


@dataclass
class RemediationFailed(CommandFailed):
    """An install or repair step failed."""

    message: str = "Remediation failed"


@dataclass
class MigrationFailed(CommandFailed):
    """The schema migration tool failed; output is kept verbatim."""

    message: str = "Database migrations failed"
    hint: str | None = "Fix the reported problem and run: devstack migrate"


@dataclass
class ServiceCommandFailed(CommandFailed):
    """A compose command against the backing services failed."""

    message: str = "Service command failed"


@dataclass
class VolumeRemovalFailed(CommandFailed):
    """A named volume could not be removed for a reason other than absence."""

    message: str = "Volume removal failed"


@dataclass
class ClusterCommandFailed(CommandFailed):
    """A cluster runtime command (other than start) failed."""

    message: str = "Cluster command failed"


@dataclass
class ClusterStartFailed(DevstackError):
    """The cluster did not start within the retry policy."""

    message: str = "Could not start Minikube"
    hint: str | None = (
        "You may need to logout/login for docker group permissions to take effect"
    )
    attempts: int = 0
    output: str = ""


@dataclass
class ServiceReadinessTimeout(DevstackError):
    """A service did not answer its readiness probe in time; non-blocking."""

    message: str = "Service might not be ready yet"
    fatal: bool = False
    service: str = ""


@dataclass
class DockerComposeUnavailable(DevstackError):
    """Neither `docker compose` nor `docker-compose` is available."""

    message: str = "Docker Compose not found"
    hint: str | None = "Install the docker compose plugin: devstack setup"


@dataclass
class ContainerEngineUnavailable(DevstackError):
    """The docker daemon is not reachable."""

    message: str = "Docker is not running. Please start Docker first."
    hint: str | None = "sudo systemctl start docker"
