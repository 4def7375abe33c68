"""Unit tests for bootstrap cluster module."""

from __future__ import annotations

import pytest

from devstack_cli.bootstrap import ClusterManager, ClusterState, RetryPolicy
from devstack_cli.errors import ClusterCommandFailed, ClusterStartFailed, MissingRequiredDependency

MINIKUBE_RUNNING = """\
minikube
type: Control Plane
host: Running
kubelet: Running
apiserver: Running
kubeconfig: Configured
"""

MINIKUBE_STOPPED = """\
minikube
type: Control Plane
host: Stopped
kubelet: Stopped
apiserver: Stopped
kubeconfig: Stopped
"""


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def manager(fake_runner, sleeps):
    fake_runner.executables |= {"minikube", "kubectl"}
    return ClusterManager(
        fake_runner,
        policy=RetryPolicy(max_attempts=3, backoff_seconds=5.0),
        sleep=sleeps.append,
    )


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.backoff_seconds == 5.0

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestClusterStatus:
    """Tests for ClusterManager.status."""

    def test_absent(self, fake_runner):
        manager = ClusterManager(fake_runner)
        assert manager.status().state == ClusterState.ABSENT
        assert fake_runner.calls == []

    def test_running(self, manager, fake_runner):
        fake_runner.on("minikube", "status", stdout=MINIKUBE_RUNNING)

        assert manager.status().state == ClusterState.RUNNING
        assert fake_runner.calls[0].as_user is True

    def test_stopped(self, manager, fake_runner):
        fake_runner.on("minikube", "status", returncode=7, stdout=MINIKUBE_STOPPED)
        assert manager.status().state == ClusterState.STOPPED

    def test_profile_not_found(self, manager, fake_runner):
        fake_runner.on(
            "minikube",
            "status",
            returncode=85,
            stdout='* Profile "minikube" not found. Run "minikube profile list" to view all profiles.',
        )
        assert manager.status().state == ClusterState.STOPPED

    def test_unknown(self, manager, fake_runner):
        fake_runner.on("minikube", "status", returncode=124, stderr="command timed out")
        assert manager.status().state == ClusterState.UNKNOWN


class TestClusterStart:
    """Tests for ClusterManager.start."""

    def test_running_cluster_makes_no_start_calls(self, manager, fake_runner, sleeps):
        fake_runner.on("minikube", "status", stdout=MINIKUBE_RUNNING)

        result = manager.start()

        assert result.already_running is True
        assert result.attempts == 0
        assert fake_runner.count("minikube", "start") == 0
        assert sleeps == []

    def test_absent_runtime(self, fake_runner):
        manager = ClusterManager(fake_runner, sleep=lambda s: None)

        with pytest.raises(MissingRequiredDependency) as exc_info:
            manager.start()

        assert exc_info.value.missing == ["minikube"]

    def test_start_first_attempt(self, manager, fake_runner, sleeps):
        fake_runner.on("minikube", "status", returncode=7, stdout=MINIKUBE_STOPPED)

        result = manager.start()

        assert result.attempts == 1
        assert result.already_running is False
        assert sleeps == []
        start = next(c for c in fake_runner.calls if c.command[:2] == ["minikube", "start"])
        assert start.command == ["minikube", "start", "--driver=docker"]
        assert start.as_user is True

    def test_start_succeeds_after_retry(self, manager, fake_runner, sleeps):
        fake_runner.on("minikube", "status", returncode=7, stdout=MINIKUBE_STOPPED)
        fake_runner.sequence(
            ("minikube", "start"),
            {"returncode": 80, "stderr": "Exiting due to GUEST_PROVISION"},
            {"returncode": 0},
        )

        result = manager.start()

        assert result.attempts == 2
        assert sleeps == [5.0]

    def test_always_failing_start_uses_every_attempt(self, manager, fake_runner, sleeps):
        fake_runner.on("minikube", "status", returncode=7, stdout=MINIKUBE_STOPPED)
        fake_runner.on("minikube", "start", returncode=80, stderr="permission denied on docker.sock")
        attempts_seen = []

        with pytest.raises(ClusterStartFailed) as exc_info:
            manager.start(on_attempt=lambda attempt, total, error: attempts_seen.append(attempt))

        assert fake_runner.count("minikube", "start") == 3
        assert sleeps == [5.0, 5.0]
        assert attempts_seen == [1, 2, 3]
        assert exc_info.value.attempts == 3
        assert "docker.sock" in exc_info.value.output
        assert "logout/login" in exc_info.value.hint

    def test_single_attempt_policy_never_sleeps(self, fake_runner, sleeps):
        fake_runner.executables.add("minikube")
        fake_runner.on("minikube", "status", returncode=7, stdout=MINIKUBE_STOPPED)
        fake_runner.on("minikube", "start", returncode=1)
        manager = ClusterManager(fake_runner, RetryPolicy(max_attempts=1), sleep=sleeps.append)

        with pytest.raises(ClusterStartFailed):
            manager.start()

        assert fake_runner.count("minikube", "start") == 1
        assert sleeps == []

    def test_custom_driver(self, fake_runner):
        fake_runner.executables.add("minikube")
        fake_runner.on("minikube", "status", returncode=7)
        manager = ClusterManager(fake_runner, driver="podman", sleep=lambda s: None)

        manager.start()

        assert ["minikube", "start", "--driver=podman"] in fake_runner.commands


class TestClusterStopAndDescribe:
    """Tests for stop and describe."""

    def test_stop(self, manager, fake_runner):
        manager.stop()
        assert fake_runner.commands == [["minikube", "stop"]]
        assert fake_runner.calls[0].as_user is True

    def test_stop_failure(self, manager, fake_runner):
        fake_runner.on("minikube", "stop", returncode=1, stderr="no cluster")

        with pytest.raises(ClusterCommandFailed) as exc_info:
            manager.stop()

        assert exc_info.value.returncode == 1

    def test_describe_running(self, manager, fake_runner):
        fake_runner.on("minikube", "status", stdout=MINIKUBE_RUNNING)
        fake_runner.on("kubectl", "get", "nodes", stdout="NAME       STATUS   ROLES\nminikube   Ready    control-plane")

        description = manager.describe()

        assert list(description.sections) == ["Minikube status", "Cluster info", "Nodes"]
        assert "Ready" in description.sections["Nodes"]

    def test_describe_stopped_skips_kubectl(self, manager, fake_runner):
        fake_runner.on("minikube", "status", returncode=7, stdout=MINIKUBE_STOPPED)

        description = manager.describe()

        assert list(description.sections) == ["Minikube status"]
        assert fake_runner.count("kubectl") == 0

