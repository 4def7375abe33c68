"""devstack application - wires the bootstrap components together."""

from collections.abc import Callable

from .bootstrap import (
    Bootstrapper,
    ClusterManager,
    CommandRunner,
    IdentityContext,
    InstallerDispatcher,
    MigrationRunner,
    OSProfile,
    ProjectTasks,
    ReadinessPoller,
    RetryPolicy,
    ServiceManager,
    detect_os_profile,
    resolve_identity,
)
from .config import DevstackConfig
from .formatters import Reporter


class DevstackApplication:
    """
    devstack application.

    Builds every component from one configuration and identity context.
    Construction runs no external commands.
    """

    def __init__(
        self,
        config: DevstackConfig,
        reporter: Reporter | None = None,
        identity: IdentityContext | None = None,
        runner: CommandRunner | None = None,
        detect_os: Callable[[], OSProfile] = detect_os_profile,
    ):
        """Initialize application.

        Args:
            config: Loaded configuration
            reporter: Console reporter (default: Reporter())
            identity: Identity context (default: resolved from the process)
            runner: Command runner (default: CommandRunner(identity))
            detect_os: OS profile detector
        """
        self.config = config
        self.reporter = reporter or Reporter()
        self.identity = identity or resolve_identity()
        self.runner = runner or CommandRunner(self.identity)

        self.installer = InstallerDispatcher(self.runner)
        self.cluster = ClusterManager(
            self.runner,
            policy=RetryPolicy(
                max_attempts=config.cluster_start_attempts,
                backoff_seconds=config.cluster_start_delay,
            ),
            driver=config.cluster_driver,
        )
        self.migrations = MigrationRunner(self.runner, config.project_dir, config.database_url)
        self.services = ServiceManager(
            self.runner,
            project_dir=config.project_dir,
            compose_project=config.compose_project,
            poller=ReadinessPoller(
                timeout_seconds=config.readiness_timeout,
                interval_seconds=config.readiness_interval,
                settle_seconds=config.settle_seconds,
            ),
            migrations=self.migrations,
        )
        self.project = ProjectTasks(self.runner, config.project_dir, image_name=config.image_name)
        self.bootstrapper = Bootstrapper(
            runner=self.runner,
            identity=self.identity,
            installer=self.installer,
            cluster=self.cluster,
            services=self.services,
            migrations=self.migrations,
            project=self.project,
            reporter=self.reporter,
            project_dir=config.project_dir,
            detect_os=detect_os,
            app_env=config.app_env,
        )
