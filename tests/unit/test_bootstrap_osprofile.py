"""Unit tests for bootstrap osprofile module."""

from __future__ import annotations

from pathlib import Path

import pytest

from devstack_cli.bootstrap import OSFamily, PackageManager, classify, detect_os_profile
from devstack_cli.bootstrap.osprofile import parse_os_release
from devstack_cli.errors import UnresolvedOS

UBUNTU_OS_RELEASE = """\
PRETTY_NAME="Ubuntu 22.04.3 LTS"
NAME="Ubuntu"
VERSION_ID="22.04"
VERSION="22.04.3 LTS (Jammy Jellyfish)"
VERSION_CODENAME=jammy
ID=ubuntu
ID_LIKE=debian
"""

CENTOS_OS_RELEASE = """\
NAME="CentOS Stream"
VERSION="9"
ID="centos"
VERSION_ID="9"
"""


class TestClassify:
    """Tests for OS name classification."""

    @pytest.mark.parametrize(
        "name,family",
        [
            ("Ubuntu", OSFamily.DEBIAN),
            ("Ubuntu 22.04", OSFamily.DEBIAN),
            ("Debian GNU/Linux", OSFamily.DEBIAN),
            ("CentOS Stream", OSFamily.RHEL),
            ("Red Hat Enterprise Linux", OSFamily.RHEL),
            ("Fedora Linux", OSFamily.RHEL),
            ("Arch Linux", OSFamily.UNSUPPORTED),
            ("Alpine Linux", OSFamily.UNSUPPORTED),
        ],
    )
    def test_classify(self, name, family):
        assert classify(name) == family


class TestParseOsRelease:
    """Tests for os-release parsing."""

    def test_quoted_and_bare_values(self):
        info = parse_os_release(UBUNTU_OS_RELEASE)
        assert info["NAME"] == "Ubuntu"
        assert info["VERSION_CODENAME"] == "jammy"
        assert info["VERSION"] == "22.04.3 LTS (Jammy Jellyfish)"

    def test_comments_and_garbage_ignored(self):
        info = parse_os_release("# comment\n\nnot a pair\nNAME='Fedora Linux'\n")
        assert info == {"NAME": "Fedora Linux"}


class TestDetectOsProfile:
    """Tests for detect_os_profile."""

    def test_ubuntu(self, tmp_path: Path):
        os_release = tmp_path / "os-release"
        os_release.write_text(UBUNTU_OS_RELEASE)

        profile = detect_os_profile(os_release, system="Linux")

        assert profile.family == OSFamily.DEBIAN
        assert profile.package_manager == PackageManager.APT
        assert profile.distro_id == "ubuntu"
        assert profile.codename == "jammy"
        assert profile.label == "Ubuntu 22.04"

    def test_centos(self, tmp_path: Path):
        os_release = tmp_path / "os-release"
        os_release.write_text(CENTOS_OS_RELEASE)

        profile = detect_os_profile(os_release, system="Linux")

        assert profile.family == OSFamily.RHEL
        assert profile.package_manager == PackageManager.YUM
        assert profile.codename is None

    def test_unknown_distribution_is_unsupported(self, tmp_path: Path):
        os_release = tmp_path / "os-release"
        os_release.write_text('NAME="Gentoo"\nID=gentoo\n')

        profile = detect_os_profile(os_release, system="Linux")

        assert profile.family == OSFamily.UNSUPPORTED
        assert profile.package_manager == PackageManager.NONE

    def test_darwin_skips_os_release(self, tmp_path: Path):
        profile = detect_os_profile(tmp_path / "missing", system="Darwin")

        assert profile.family == OSFamily.DARWIN
        assert profile.package_manager == PackageManager.BREW

    def test_missing_descriptor(self, tmp_path: Path):
        with pytest.raises(UnresolvedOS):
            detect_os_profile(tmp_path / "missing", system="Linux")

    def test_descriptor_without_name(self, tmp_path: Path):
        os_release = tmp_path / "os-release"
        os_release.write_text("ID=mystery\n")

        with pytest.raises(UnresolvedOS):
            detect_os_profile(os_release, system="Linux")

    def test_undecodable_descriptor(self, tmp_path: Path):
        os_release = tmp_path / "os-release"
        os_release.write_bytes(b'NAME="Ubuntu\xff\xfe"\n')

        with pytest.raises(UnresolvedOS):
            detect_os_profile(os_release, system="Linux")
