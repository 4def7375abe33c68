"""Orchestrated multi-step flows.

Each flow is a fixed sequence over the registry, installer, service, cluster
and migration components. Steps run one at a time; any raised error stops
the flow and nothing is rolled back.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import MissingOptionalDependency, ServiceReadinessTimeout
from ..shared.logging import get_logger
from .cluster import ClusterManager, ClusterStartResult
from .identity import IdentityContext
from .installer import InstallerDispatcher, RemediationAction, RemediationResult, Step
from .migrations import MigrationRunner
from .osprofile import OSProfile, detect_os_profile
from .prerequisites import (
    DependencyRegistry,
    ReconciliationReport,
    cluster_registry,
    default_registry,
)
from .project import ProjectTasks, ensure_env_file
from .shell import CommandRunner
from .stack import ResetResult, ServiceManager

if TYPE_CHECKING:
    from ..formatters import Reporter

logger = get_logger(__name__)

RELOGIN_WARNING = (
    "You may need to logout and login again for docker group permissions to take effect"
)


class Bootstrapper:
    """Run the setup, cluster and dev flows."""

    def __init__(
        self,
        runner: CommandRunner,
        identity: IdentityContext,
        installer: InstallerDispatcher,
        cluster: ClusterManager,
        services: ServiceManager,
        migrations: MigrationRunner,
        project: ProjectTasks,
        reporter: Reporter,
        project_dir: Path,
        detect_os: Callable[[], OSProfile] = detect_os_profile,
        app_env: dict[str, str] | None = None,
    ):
        self.runner = runner
        self.identity = identity
        self.installer = installer
        self.cluster = cluster
        self.services = services
        self.migrations = migrations
        self.project = project
        self.reporter = reporter
        self.project_dir = project_dir
        self.app_env = app_env or {}
        self._detect_os = detect_os
        self._os_profile: OSProfile | None = None
        self.relogin_pending = False

    @property
    def os_profile(self) -> OSProfile:
        """Host classification, resolved once per run."""
        if self._os_profile is None:
            self._os_profile = self._detect_os()
            logger.info(
                "flows.os_detected",
                name=self._os_profile.label,
                family=self._os_profile.family.value,
            )
        return self._os_profile

    # -------------------------------------------------------------------------
    # Dependencies
    # -------------------------------------------------------------------------

    def check(self, registry: DependencyRegistry | None = None) -> ReconciliationReport:
        """Probe a registry and print the per-dependency lines."""
        registry = registry or default_registry()
        self.reporter.info("Checking dependencies...")
        report = registry.check(self.runner)
        self.reporter.print_report(report)
        return report

    def remediate_gaps(self, report: ReconciliationReport) -> list[RemediationResult]:
        """Remediate each missing or unhealthy dependency exactly once.

        Optional gaps only produce warnings.
        """
        results = []

        def on_step(step: Step) -> None:
            self.reporter.info(f"  {step.description}")

        for check in report.missing_required:
            self.reporter.info(f"Installing {check.name}...")
            result = self.installer.remediate(
                check.dependency, self.os_profile, self.identity, on_step=on_step
            )
            self.reporter.success(f"{check.name} installed")
            results.append(result)

        for check in report.unhealthy:
            self.reporter.info(f"Starting {check.name}...")
            result = self.installer.remediate(
                check.dependency,
                self.os_profile,
                self.identity,
                action=RemediationAction.START,
                on_step=on_step,
            )
            self.reporter.success(f"{check.name} started")
            results.append(result)

        for check in report.missing_optional:
            self.reporter.warn(
                MissingOptionalDependency(message=f"Optional dependency not found: {check.name}")
            )

        for result in results:
            for note in result.notes:
                self.reporter.warning(note)
            if result.requires_relogin:
                self.relogin_pending = True
                self.reporter.warning(RELOGIN_WARNING)
        return results

    # -------------------------------------------------------------------------
    # Services
    # -------------------------------------------------------------------------

    def _report_readiness(self, warnings: list[ServiceReadinessTimeout]) -> None:
        not_ready = {w.service for w in warnings}
        for name in self.services.services:
            if name not in not_ready:
                self.reporter.success(f"{name} is ready")
        for warning in warnings:
            self.reporter.warn(warning)

    def db_up(self) -> list[ServiceReadinessTimeout]:
        """Start the database and cache and wait for them."""
        self.reporter.info("Starting database services...")
        self.services.up()
        self.reporter.info("Waiting for services to be ready...")
        warnings = self.services.wait_ready()
        self._report_readiness(warnings)
        return warnings

    def db_down(self) -> None:
        self.reporter.info("Stopping database services...")
        self.services.down()
        self.reporter.success("Database services stopped")

    def db_reset(self) -> ResetResult:
        """Drop service data and recreate it from migrations."""
        self.reporter.warning("Resetting database (this will delete all data)...")
        result = self.services.reset()
        for volume in result.absent_volumes:
            self.reporter.info(f"Volume {volume} did not exist")
        self._report_readiness(result.warnings)
        self.reporter.success("Database reset completed")
        return result

    def migrate(self) -> None:
        self.reporter.info("Running database migrations...")
        self.migrations.migrate()
        self.reporter.success("Migrations completed")

    def prepare_offline_queries(self) -> None:
        self.reporter.info("Preparing SQLx offline queries...")
        self.migrations.prepare_offline()
        self.reporter.success("Offline queries prepared")

    # -------------------------------------------------------------------------
    # Cluster
    # -------------------------------------------------------------------------

    def start_cluster(self) -> ClusterStartResult:
        """Start the cluster, reporting each failed attempt."""
        if self.relogin_pending:
            self.reporter.warning(RELOGIN_WARNING)

        def on_attempt(attempt: int, max_attempts: int, error: str | None) -> None:
            self.reporter.warning(f"Attempt {attempt}/{max_attempts} failed")

        self.reporter.info("Starting Minikube...")
        result = self.cluster.start(on_attempt=on_attempt)
        if result.already_running:
            self.reporter.success("Minikube is already running")
        else:
            self.reporter.success("Minikube started successfully")
        return result

    def stop_cluster(self) -> None:
        self.reporter.info("Stopping Minikube...")
        self.cluster.stop()
        self.reporter.success("Minikube stopped")

    # -------------------------------------------------------------------------
    # Flows
    # -------------------------------------------------------------------------

    def setup(self) -> None:
        """Full environment setup."""
        self.reporter.info("Setting up development environment...")

        report = self.check(default_registry())
        self.remediate_gaps(report)

        created = ensure_env_file(self.project_dir)
        if created:
            self.reporter.success("Created .env file from .env.example")
        elif created is None:
            self.reporter.warning("No .env.example found, skipping .env creation")

        if self.migrations.ensure_tool():
            self.reporter.success("sqlx-cli installed")

        self.db_up()
        self.migrate()
        self.prepare_offline_queries()
        self.reporter.success("Development environment setup completed!")

    def install_cluster_runtime(self) -> ClusterStartResult:
        """Install the cluster runtime and client, then start the cluster."""
        self.reporter.info("Setting up Minikube...")
        report = self.check(cluster_registry())
        self.remediate_gaps(report)
        return self.start_cluster()

    def setup_with_cluster(self) -> ClusterStartResult:
        self.setup()
        return self.install_cluster_runtime()

    def dev(self) -> None:
        """Ensure the database is up and migrated, then run the server."""
        self.reporter.info("Starting development server...")
        if not self.services.is_running("postgres"):
            self.db_up()
        if not self.migrations.is_current():
            self.migrate()
        self.project.run_server(env=self.app_env)
