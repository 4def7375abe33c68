"""Local cluster lifecycle (Minikube).

Cluster state is always observed from the runtime, never stored. Every
minikube and kubectl command runs as the unprivileged identity because the
cluster profile lives in that user's home directory.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from ..errors import ClusterCommandFailed, ClusterStartFailed, MissingRequiredDependency
from ..shared.logging import get_logger
from .shell import CommandRunner

logger = get_logger(__name__)

# `minikube status` exit code bits: 1 host, 2 kubelet, 4 apiserver not running
STATUS_STOPPED_BITS = 7
# `minikube status` exit code for a missing profile
STATUS_PROFILE_NOT_FOUND = 85


class ClusterState(Enum):
    """Observed state of the local cluster."""

    ABSENT = "absent"  # Runtime not installed
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with a fixed delay between attempts."""

    max_attempts: int = 3
    backoff_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must not be negative")


@dataclass
class ClusterStatus:
    """Result of a status query."""

    state: ClusterState
    message: str = ""


@dataclass
class ClusterStartResult:
    """Result of a successful start."""

    attempts: int
    already_running: bool = False


@dataclass
class ClusterDescription:
    """Combined runtime and client view of the cluster."""

    status: ClusterStatus
    sections: dict[str, str] = field(default_factory=dict)


class ClusterManager:
    """Manage the local Minikube cluster."""

    def __init__(
        self,
        runner: CommandRunner,
        policy: RetryPolicy | None = None,
        driver: str = "docker",
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize cluster manager.

        Args:
            runner: Command runner (carries the identity context).
            policy: Retry policy for start (default: 3 attempts, 5 s apart).
            driver: Minikube driver.
            sleep: Sleep function, injectable for tests.
        """
        self.runner = runner
        self.policy = policy or RetryPolicy()
        self.driver = driver
        self.sleep = sleep

    def status(self) -> ClusterStatus:
        """Query the cluster runtime for the current state."""
        if not self.runner.which("minikube"):
            return ClusterStatus(ClusterState.ABSENT, message="Minikube not found")

        result = self.runner.run(["minikube", "status"], as_user=True, timeout=60)
        output = result.output

        if result.ok:
            return ClusterStatus(ClusterState.RUNNING, message=output)

        lowered = output.lower()
        if (
            "stopped" in lowered
            or "not found" in lowered
            or result.returncode == STATUS_PROFILE_NOT_FOUND
            or 0 < result.returncode <= STATUS_STOPPED_BITS
        ):
            return ClusterStatus(ClusterState.STOPPED, message=output)

        return ClusterStatus(ClusterState.UNKNOWN, message=output)

    def start(self, on_attempt: Callable[[int, int, str | None], None] | None = None) -> ClusterStartResult:
        """Start the cluster, retrying per the policy.

        Args:
            on_attempt: Optional callback called with (attempt, max_attempts, error)
                       after each failed attempt.

        Returns:
            ClusterStartResult with the number of start attempts made.

        Raises:
            MissingRequiredDependency: Minikube is not installed.
            ClusterStartFailed: Every attempt failed.
        """
        current = self.status()
        if current.state == ClusterState.RUNNING:
            logger.info("cluster.already_running")
            return ClusterStartResult(attempts=0, already_running=True)
        if current.state == ClusterState.ABSENT:
            raise MissingRequiredDependency(missing=["minikube"])

        command = ["minikube", "start", f"--driver={self.driver}"]
        last_output = ""
        for attempt in range(1, self.policy.max_attempts + 1):
            logger.info("cluster.start_attempt", attempt=attempt, max_attempts=self.policy.max_attempts)
            result = self.runner.run(command, as_user=True)
            if result.ok:
                return ClusterStartResult(attempts=attempt)

            last_output = result.output
            logger.warning("cluster.start_failed", attempt=attempt, returncode=result.returncode)
            if on_attempt:
                on_attempt(attempt, self.policy.max_attempts, last_output or None)

            if attempt < self.policy.max_attempts:
                self.sleep(self.policy.backoff_seconds)

        raise ClusterStartFailed(
            message=f"Could not start Minikube after {self.policy.max_attempts} attempts",
            attempts=self.policy.max_attempts,
            output=last_output,
        )

    def stop(self) -> None:
        """Stop the cluster.

        Raises:
            ClusterCommandFailed: `minikube stop` failed.
        """
        command = ["minikube", "stop"]
        result = self.runner.run(command, as_user=True)
        if not result.ok:
            raise ClusterCommandFailed(
                message="Failed to stop Minikube",
                command=command,
                returncode=result.returncode,
                output=result.output,
            )

    def describe(self) -> ClusterDescription:
        """Collect runtime status, cluster info and nodes."""
        status = self.status()
        description = ClusterDescription(status=status)
        if status.state == ClusterState.ABSENT:
            return description

        description.sections["Minikube status"] = status.message
        if status.state == ClusterState.RUNNING and self.runner.which("kubectl"):
            for title, command in (
                ("Cluster info", ["kubectl", "cluster-info"]),
                ("Nodes", ["kubectl", "get", "nodes"]),
            ):
                result = self.runner.run(command, as_user=True, timeout=60)
                description.sections[title] = result.output
        return description
