"""Bootstrap package for the local development environment.

This package provides the building blocks behind the `devstack` commands:
1. Resolves the invoking and unprivileged identities
2. Classifies the host OS
3. Detects required and optional tooling
4. Remediates gaps with OS-specific install recipes
5. Drives the local cluster and the backing services
6. Runs database migrations
"""

from .cluster import (
    ClusterDescription,
    ClusterManager,
    ClusterStartResult,
    ClusterState,
    ClusterStatus,
    RetryPolicy,
)
from .flows import Bootstrapper
from .health import ReadinessPoller, ReadinessResult
from .identity import IdentityContext, resolve_identity
from .installer import (
    BinaryDownloader,
    CommandStep,
    DownloadStep,
    InstallerDispatcher,
    Remediation,
    RemediationAction,
    RemediationResult,
)
from .migrations import MigrationRunner
from .osprofile import OSFamily, OSProfile, PackageManager, classify, detect_os_profile
from .prerequisites import (
    Dependency,
    DependencyCheck,
    DependencyKind,
    DependencyRegistry,
    DependencyStatus,
    ProbeResult,
    ReconciliationReport,
    cluster_registry,
    default_registry,
)
from .project import ProjectTasks, ensure_env_file
from .shell import CommandResult, CommandRunner
from .stack import (
    DEFAULT_SERVICES,
    ResetResult,
    ServiceManager,
    ServiceSpec,
    StackState,
    StackStatus,
    detect_compose_command,
)

__all__ = [
    # Identity
    "IdentityContext",
    "resolve_identity",
    # OS profile
    "OSFamily",
    "OSProfile",
    "PackageManager",
    "classify",
    "detect_os_profile",
    # Commands
    "CommandResult",
    "CommandRunner",
    # Prerequisites
    "Dependency",
    "DependencyCheck",
    "DependencyKind",
    "DependencyRegistry",
    "DependencyStatus",
    "ProbeResult",
    "ReconciliationReport",
    "cluster_registry",
    "default_registry",
    # Installer
    "BinaryDownloader",
    "CommandStep",
    "DownloadStep",
    "InstallerDispatcher",
    "Remediation",
    "RemediationAction",
    "RemediationResult",
    # Cluster
    "ClusterDescription",
    "ClusterManager",
    "ClusterStartResult",
    "ClusterState",
    "ClusterStatus",
    "RetryPolicy",
    # Readiness polling
    "ReadinessPoller",
    "ReadinessResult",
    # Services
    "DEFAULT_SERVICES",
    "ResetResult",
    "ServiceManager",
    "ServiceSpec",
    "StackState",
    "StackStatus",
    "detect_compose_command",
    # Migrations
    "MigrationRunner",
    # Project
    "ProjectTasks",
    "ensure_env_file",
    # Flows
    "Bootstrapper",
]
