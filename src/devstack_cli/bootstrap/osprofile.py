"""Host OS classification.

Classifies the host into one OS family, each with one package-manager
strategy. The classification is computed once per run and drives the
installer's recipe table.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..errors import UnresolvedOS

OS_RELEASE = Path("/etc/os-release")


class OSFamily(Enum):
    """Supported host families."""

    DEBIAN = "debian-like"
    RHEL = "rhel-like"
    DARWIN = "darwin-like"
    UNSUPPORTED = "unsupported"


class PackageManager(Enum):
    """Package-manager strategy per family."""

    APT = "apt-get"
    YUM = "yum"
    BREW = "brew"
    NONE = "none"


FAMILY_PACKAGE_MANAGERS = {
    OSFamily.DEBIAN: PackageManager.APT,
    OSFamily.RHEL: PackageManager.YUM,
    OSFamily.DARWIN: PackageManager.BREW,
    OSFamily.UNSUPPORTED: PackageManager.NONE,
}

# Substrings of the os-release NAME, checked in order
FAMILY_MARKERS: list[tuple[tuple[str, ...], OSFamily]] = [
    (("Ubuntu", "Debian"), OSFamily.DEBIAN),
    (("CentOS", "Red Hat", "Fedora"), OSFamily.RHEL),
]


@dataclass(frozen=True)
class OSProfile:
    """Classified host."""

    family: OSFamily
    name: str
    version: str | None = None
    distro_id: str | None = None
    codename: str | None = None

    @property
    def package_manager(self) -> PackageManager:
        return FAMILY_PACKAGE_MANAGERS[self.family]

    @property
    def label(self) -> str:
        return f"{self.name} {self.version}" if self.version else self.name


def classify(name: str) -> OSFamily:
    """Classify an OS name into a family by substring match."""
    for markers, family in FAMILY_MARKERS:
        if any(marker in name for marker in markers):
            return family
    return OSFamily.UNSUPPORTED


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release KEY=value lines, unquoting values."""
    values: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        values[key.strip()] = value
    return values


def detect_os_profile(
    os_release: Path = OS_RELEASE,
    system: str | None = None,
) -> OSProfile:
    """Detect and classify the host.

    Args:
        os_release: Path to the os-release descriptor.
        system: platform.system() override (for tests).

    Returns:
        OSProfile for the host.

    Raises:
        UnresolvedOS: Descriptor missing, not valid UTF-8 or without a NAME
            on a non-macOS host.
    """
    system = system or platform.system()
    if system == "Darwin":
        return OSProfile(
            family=OSFamily.DARWIN,
            name="macOS",
            version=platform.mac_ver()[0] or None,
            distro_id="macos",
        )

    try:
        text = os_release.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise UnresolvedOS(message=f"Cannot determine OS: {os_release} unreadable ({e})") from e

    info = parse_os_release(text)
    name = info.get("NAME") or info.get("PRETTY_NAME")
    if not name:
        raise UnresolvedOS(message=f"Cannot determine OS: no NAME in {os_release}")

    return OSProfile(
        family=classify(name),
        name=name,
        version=info.get("VERSION_ID"),
        distro_id=info.get("ID"),
        codename=info.get("VERSION_CODENAME") or info.get("UBUNTU_CODENAME"),
    )
