"""OS-specific remediation of missing or stopped dependencies.

Recipes are looked up once in a table keyed by (dependency kind, OS family)
and produce an ordered list of steps. Recipes are written to be safely
re-runnable: the dispatcher does not re-check the host before running them.
"""

from __future__ import annotations

import hashlib
import platform
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

import httpx

from ..errors import PrivilegeRequired, RemediationFailed, UnsupportedPlatform
from ..shared.logging import get_logger
from .identity import IdentityContext
from .osprofile import OSFamily, OSProfile, PackageManager
from .prerequisites import Dependency, DependencyKind
from .shell import CommandRunner

logger = get_logger(__name__)

DOCKER_GROUP = "docker"
INSTALL_DIR = "/usr/local/bin"

# platform.machine() -> release artifact architecture
ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}

MANUAL_INSTALL_URLS = {
    DependencyKind.TOOLCHAIN: "https://rustup.rs/",
    DependencyKind.CONTAINER_ENGINE: "https://docs.docker.com/get-docker/",
    DependencyKind.COMPOSE: "https://docs.docker.com/compose/install/",
    DependencyKind.CLUSTER_CLIENT: "https://kubernetes.io/docs/tasks/tools/",
    DependencyKind.CLUSTER_RUNTIME: "https://minikube.sigs.k8s.io/docs/start/",
    DependencyKind.VCS: "https://git-scm.com/downloads",
    DependencyKind.OPTIONAL_UTILITY: "your system package manager",
}


class RemediationAction(Enum):
    """What to do about a dependency."""

    INSTALL = "install"  # Missing
    START = "start"  # Installed but its service is down


@dataclass(frozen=True)
class CommandStep:
    """Run one external command."""

    description: str
    command: tuple[str, ...]
    elevated: bool = True
    as_user: bool = False
    input: str | None = None
    fallback: tuple[str, ...] | None = None  # Tried when the command fails


@dataclass(frozen=True)
class DownloadStep:
    """Download a release binary, verify it and install it."""

    description: str
    url: str
    destination: str
    checksum_url: str | None = None
    version_url: str | None = None  # Resolves {version} in the URLs
    elevated: bool = True


Step = CommandStep | DownloadStep


@dataclass(frozen=True)
class RecipeContext:
    """Inputs available to a recipe builder."""

    dependency: Dependency
    profile: OSProfile
    identity: IdentityContext
    arch: str


RecipeBuilder = Callable[[RecipeContext], list[Step]]


@dataclass(frozen=True)
class Remediation:
    """Install and (optionally) start sequences for one table cell."""

    install: RecipeBuilder
    start: RecipeBuilder | None = None
    access_group: str | None = None
    notes: tuple[str, ...] = ()


@dataclass
class RemediationResult:
    """Outcome of a successful remediation."""

    dependency: str
    action: RemediationAction
    steps: list[str] = field(default_factory=list)
    access_group: str | None = None
    notes: list[str] = field(default_factory=list)

    @property
    def requires_relogin(self) -> bool:
        """Group membership changed; it only applies to new login sessions."""
        return self.access_group is not None


# =============================================================================
# Recipe helpers
# =============================================================================


def _apt(*args: str, description: str | None = None) -> CommandStep:
    return CommandStep(description or f"apt-get {' '.join(args)}", ("apt-get", *args, "-y"))


def _yum(*args: str, description: str | None = None) -> CommandStep:
    return CommandStep(description or f"yum {' '.join(args)}", ("yum", *args, "-y"))


def _brew(*args: str) -> CommandStep:
    return CommandStep(
        f"brew {' '.join(args)}",
        ("brew", *args),
        elevated=False,
        as_user=True,
    )


def _enable_docker_service(ctx: RecipeContext) -> list[Step]:
    return [CommandStep("Starting and enabling the docker service", ("systemctl", "enable", "--now", "docker"))]


def _docker_group_membership(ctx: RecipeContext) -> CommandStep:
    return CommandStep(
        f"Adding {ctx.identity.unprivileged_user} to the {DOCKER_GROUP} group",
        ("usermod", "-aG", DOCKER_GROUP, ctx.identity.unprivileged_user),
    )


def _rustup(ctx: RecipeContext) -> list[Step]:
    return [
        CommandStep(
            "Installing Rust via rustup",
            ("sh", "-c", "curl --proto '=https' --tlsv1.2 -sSf https://sh.rustup.rs | sh -s -- -y"),
            elevated=False,
            as_user=True,
        )
    ]


# Debian / Ubuntu


def _debian_docker(ctx: RecipeContext) -> list[Step]:
    distro = "debian" if ctx.profile.distro_id == "debian" else "ubuntu"
    repo = f"https://download.docker.com/linux/{distro}"
    keyring = "/usr/share/keyrings/docker-archive-keyring.gpg"
    sources = "/etc/apt/sources.list.d/docker.list"

    steps: list[Step] = [
        _apt("update"),
        _apt(
            "install",
            "apt-transport-https",
            "ca-certificates",
            "curl",
            "gnupg",
            "lsb-release",
            description="Installing repository prerequisites",
        ),
        CommandStep(
            "Adding Docker's official GPG key",
            ("sh", "-c", f"curl -fsSL {repo}/gpg | gpg --dearmor --yes -o {keyring}"),
        ),
    ]

    if ctx.profile.codename:
        line = f"deb [arch={ctx.arch} signed-by={keyring}] {repo} {ctx.profile.codename} stable\n"
        steps.append(
            CommandStep("Registering the Docker apt repository", ("tee", sources), input=line)
        )
    else:
        steps.append(
            CommandStep(
                "Registering the Docker apt repository",
                (
                    "sh",
                    "-c",
                    f'echo "deb [arch=$(dpkg --print-architecture) signed-by={keyring}] '
                    f'{repo} $(lsb_release -cs) stable" > {sources}',
                ),
            )
        )

    steps.extend(
        [
            _apt("update"),
            _apt("install", "docker-ce", "docker-ce-cli", "containerd.io"),
            *_enable_docker_service(ctx),
            _docker_group_membership(ctx),
        ]
    )
    return steps


def _debian_packages(ctx: RecipeContext) -> list[Step]:
    return [_apt("update"), _apt("install", *ctx.dependency.package_names)]


def _debian_compose(ctx: RecipeContext) -> list[Step]:
    # The plugin only exists in Docker's apt repository; distro-packaged
    # docker gets the distro docker-compose package instead.
    return [
        _apt("update"),
        CommandStep(
            "Installing Docker Compose",
            ("apt-get", "install", "docker-compose-plugin", "-y"),
            fallback=("apt-get", "install", "docker-compose", "-y"),
        ),
    ]


# RHEL / CentOS / Fedora


def _rhel_docker(ctx: RecipeContext) -> list[Step]:
    distro = "fedora" if ctx.profile.distro_id == "fedora" else "centos"
    return [
        _yum("install", "yum-utils"),
        CommandStep(
            "Registering the Docker yum repository",
            (
                "yum-config-manager",
                "--add-repo",
                f"https://download.docker.com/linux/{distro}/docker-ce.repo",
            ),
        ),
        _yum("install", "docker-ce", "docker-ce-cli", "containerd.io"),
        *_enable_docker_service(ctx),
        _docker_group_membership(ctx),
    ]


def _rhel_packages(ctx: RecipeContext) -> list[Step]:
    return [_yum("install", *ctx.dependency.package_names)]


def _rhel_compose(ctx: RecipeContext) -> list[Step]:
    return [_yum("install", "docker-compose-plugin")]


# Linux release binaries


def _kubectl_binary(ctx: RecipeContext) -> list[Step]:
    base = f"https://dl.k8s.io/release/{{version}}/bin/linux/{ctx.arch}/kubectl"
    return [
        DownloadStep(
            "Installing kubectl",
            url=base,
            checksum_url=f"{base}.sha256",
            version_url="https://dl.k8s.io/release/stable.txt",
            destination=f"{INSTALL_DIR}/kubectl",
        )
    ]


def _minikube_binary(ctx: RecipeContext) -> list[Step]:
    url = f"https://storage.googleapis.com/minikube/releases/latest/minikube-linux-{ctx.arch}"
    return [
        DownloadStep(
            "Installing Minikube",
            url=url,
            checksum_url=f"{url}.sha256",
            destination=f"{INSTALL_DIR}/minikube",
        )
    ]


# macOS


def _darwin_docker(ctx: RecipeContext) -> list[Step]:
    return [_brew("install", "--cask", "docker")]


def _darwin_start_docker(ctx: RecipeContext) -> list[Step]:
    return [CommandStep("Launching Docker Desktop", ("open", "-a", "Docker"), elevated=False, as_user=True)]


def _darwin_packages(ctx: RecipeContext) -> list[Step]:
    return [_brew("install", *ctx.dependency.package_names)]


def _darwin_formula(formula: str) -> RecipeBuilder:
    def build(ctx: RecipeContext) -> list[Step]:
        return [_brew("install", formula)]

    return build


HOMEBREW_INSTALL = CommandStep(
    "Installing Homebrew",
    (
        "/bin/bash",
        "-c",
        'NONINTERACTIVE=1 /bin/bash -c "$(curl -fsSL '
        'https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh)"',
    ),
    elevated=False,
    as_user=True,
)


RECIPES: dict[tuple[DependencyKind, OSFamily], Remediation] = {
    # Debian / Ubuntu
    (DependencyKind.TOOLCHAIN, OSFamily.DEBIAN): Remediation(_rustup),
    (DependencyKind.CONTAINER_ENGINE, OSFamily.DEBIAN): Remediation(
        _debian_docker, start=_enable_docker_service, access_group=DOCKER_GROUP
    ),
    (DependencyKind.COMPOSE, OSFamily.DEBIAN): Remediation(_debian_compose),
    (DependencyKind.CLUSTER_CLIENT, OSFamily.DEBIAN): Remediation(_kubectl_binary),
    (DependencyKind.CLUSTER_RUNTIME, OSFamily.DEBIAN): Remediation(_minikube_binary),
    (DependencyKind.VCS, OSFamily.DEBIAN): Remediation(_debian_packages),
    (DependencyKind.OPTIONAL_UTILITY, OSFamily.DEBIAN): Remediation(_debian_packages),
    # RHEL / CentOS / Fedora
    (DependencyKind.TOOLCHAIN, OSFamily.RHEL): Remediation(_rustup),
    (DependencyKind.CONTAINER_ENGINE, OSFamily.RHEL): Remediation(
        _rhel_docker, start=_enable_docker_service, access_group=DOCKER_GROUP
    ),
    (DependencyKind.COMPOSE, OSFamily.RHEL): Remediation(_rhel_compose),
    (DependencyKind.CLUSTER_CLIENT, OSFamily.RHEL): Remediation(_kubectl_binary),
    (DependencyKind.CLUSTER_RUNTIME, OSFamily.RHEL): Remediation(_minikube_binary),
    (DependencyKind.VCS, OSFamily.RHEL): Remediation(_rhel_packages),
    (DependencyKind.OPTIONAL_UTILITY, OSFamily.RHEL): Remediation(_rhel_packages),
    # macOS
    (DependencyKind.TOOLCHAIN, OSFamily.DARWIN): Remediation(_rustup),
    (DependencyKind.CONTAINER_ENGINE, OSFamily.DARWIN): Remediation(
        _darwin_docker,
        start=_darwin_start_docker,
        notes=("Please start Docker Desktop manually",),
    ),
    (DependencyKind.COMPOSE, OSFamily.DARWIN): Remediation(_darwin_formula("docker-compose")),
    (DependencyKind.CLUSTER_CLIENT, OSFamily.DARWIN): Remediation(_darwin_formula("kubectl")),
    (DependencyKind.CLUSTER_RUNTIME, OSFamily.DARWIN): Remediation(_darwin_formula("minikube")),
    (DependencyKind.VCS, OSFamily.DARWIN): Remediation(_darwin_packages),
    (DependencyKind.OPTIONAL_UTILITY, OSFamily.DARWIN): Remediation(_darwin_packages),
}


# =============================================================================
# Execution
# =============================================================================


class BinaryDownloader:
    """Download release binaries and verify their SHA-256 checksums."""

    def __init__(self, timeout_seconds: float = 120.0, transport: httpx.BaseTransport | None = None):
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def fetch(self, step: DownloadStep, directory: Path) -> Path:
        """Download ``step.url`` into ``directory``.

        Returns:
            Path to the verified file.

        Raises:
            RemediationFailed: Network error or checksum mismatch.
        """
        try:
            with httpx.Client(
                timeout=self.timeout_seconds, follow_redirects=True, transport=self.transport
            ) as client:
                url, checksum_url = step.url, step.checksum_url
                if step.version_url:
                    version = self._get_text(client, step.version_url).strip()
                    url = url.replace("{version}", version)
                    if checksum_url:
                        checksum_url = checksum_url.replace("{version}", version)

                target = directory / Path(urlparse(url).path).name
                digest = hashlib.sha256()
                with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with open(target, "wb") as f:
                        for chunk in response.iter_bytes():
                            f.write(chunk)
                            digest.update(chunk)

                if checksum_url:
                    # Published as "<hex>" or "<hex>  <filename>"
                    fields = self._get_text(client, checksum_url).split()
                    expected = fields[0].lower() if fields else ""
                    if digest.hexdigest() != expected:
                        raise RemediationFailed(
                            message=f"{step.description}: checksum mismatch for {url}",
                            command=["GET", url],
                        )
        except httpx.HTTPError as e:
            raise RemediationFailed(
                message=f"{step.description}: download failed",
                command=["GET", step.url],
                output=str(e),
            ) from e

        logger.info("installer.downloaded", url=url, path=str(target))
        return target

    def _get_text(self, client: httpx.Client, url: str) -> str:
        response = client.get(url)
        response.raise_for_status()
        return response.text


class InstallerDispatcher:
    """Dispatch remediation recipes for a dependency on a host."""

    def __init__(
        self,
        runner: CommandRunner,
        downloader: BinaryDownloader | None = None,
        recipes: dict[tuple[DependencyKind, OSFamily], Remediation] | None = None,
        arch: str | None = None,
    ):
        """Initialize dispatcher.

        Args:
            runner: Command runner used for every step.
            downloader: Binary downloader (default: BinaryDownloader()).
            recipes: Recipe table (default: RECIPES).
            arch: Release architecture (default: from platform.machine()).
        """
        self.runner = runner
        self.downloader = downloader or BinaryDownloader()
        self.recipes = RECIPES if recipes is None else recipes
        machine = platform.machine().lower()
        self.arch = arch or ARCH_ALIASES.get(machine, machine)

    def lookup(self, dependency: Dependency, profile: OSProfile) -> Remediation:
        """Find the recipe for a dependency on this OS family."""
        if profile.family == OSFamily.UNSUPPORTED:
            raise UnsupportedPlatform(
                message=f"Unsupported operating system: {profile.label}",
            )
        remediation = self.recipes.get((dependency.kind, profile.family))
        if remediation is None:
            raise UnsupportedPlatform(
                message=f"No automatic installation of {dependency.name} on {profile.family.value}",
                hint=f"Please install {dependency.name} manually: "
                f"{MANUAL_INSTALL_URLS[dependency.kind]}",
            )
        return remediation

    def plan(
        self,
        dependency: Dependency,
        profile: OSProfile,
        identity: IdentityContext,
        action: RemediationAction = RemediationAction.INSTALL,
    ) -> list[Step]:
        """Build the ordered steps without running anything."""
        remediation = self.lookup(dependency, profile)
        builder = remediation.install if action == RemediationAction.INSTALL else remediation.start
        if builder is None:
            raise UnsupportedPlatform(
                message=f"Don't know how to {action.value} {dependency.name} "
                f"on {profile.family.value}",
                hint=f"Please {action.value} {dependency.name} manually",
            )

        steps = builder(RecipeContext(dependency, profile, identity, self.arch))
        if profile.package_manager == PackageManager.BREW and not self.runner.which("brew"):
            steps = [HOMEBREW_INSTALL, *steps]
        return steps

    def remediate(
        self,
        dependency: Dependency,
        profile: OSProfile,
        identity: IdentityContext,
        action: RemediationAction = RemediationAction.INSTALL,
        on_step: Callable[[Step], None] | None = None,
    ) -> RemediationResult:
        """Run the remediation sequence for one dependency.

        Args:
            dependency: Dependency to install or start.
            profile: Host OS profile.
            identity: Identity context for user/system scoped steps.
            action: Install (missing) or start (unhealthy).
            on_step: Optional callback invoked before each step.

        Returns:
            RemediationResult describing what ran.

        Raises:
            UnsupportedPlatform: No recipe; nothing was executed.
            PrivilegeRequired: A system step needs elevation; nothing was executed.
            RemediationFailed: A step failed.
        """
        remediation = self.lookup(dependency, profile)
        steps = self.plan(dependency, profile, identity, action)

        if not identity.is_elevated and any(step.elevated for step in steps):
            raise PrivilegeRequired(
                message=f"{action.value.capitalize()}ing {dependency.name} "
                "requires administrator privileges",
            )

        logger.info(
            "installer.remediate",
            dependency=dependency.name,
            action=action.value,
            family=profile.family.value,
            steps=len(steps),
        )

        for step in steps:
            if on_step:
                on_step(step)
            self._execute(step)

        changes_group = action == RemediationAction.INSTALL and remediation.access_group
        return RemediationResult(
            dependency=dependency.name,
            action=action,
            steps=[step.description for step in steps],
            access_group=remediation.access_group if changes_group else None,
            notes=list(remediation.notes) if action == RemediationAction.INSTALL else [],
        )

    def _execute(self, step: Step) -> None:
        if isinstance(step, DownloadStep):
            self._execute_download(step)
            return

        command = step.command
        result = self.runner.run(command, as_user=step.as_user, input=step.input)
        if not result.ok and step.fallback:
            logger.info("installer.fallback", command=list(command), fallback=list(step.fallback))
            command = step.fallback
            result = self.runner.run(command, as_user=step.as_user, input=step.input)
        if not result.ok:
            raise RemediationFailed(
                message=f"{step.description} failed",
                command=list(command),
                returncode=result.returncode,
                output=result.output,
            )

    def _execute_download(self, step: DownloadStep) -> None:
        with tempfile.TemporaryDirectory(prefix="devstack-") as tmpdir:
            binary = self.downloader.fetch(step, Path(tmpdir))
            command = ["install", "-o", "root", "-g", "root", "-m", "0755", str(binary), step.destination]
            result = self.runner.run(command)
            if not result.ok:
                raise RemediationFailed(
                    message=f"{step.description} failed",
                    command=command,
                    returncode=result.returncode,
                    output=result.output,
                )
