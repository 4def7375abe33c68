"""Shared fixtures for setup scenario tests.

Scenarios run the real flows over a FakeRunner host whose package installs
take effect: installing a package puts its binaries on PATH, so later probes
and steps see the new state.
"""

from __future__ import annotations

import pytest

# Binaries each apt package puts on PATH
PROVIDES = {
    "docker-ce": {"docker"},
    "git": {"git"},
    "curl": {"curl"},
}


@pytest.fixture
def fresh_host(make_runner):
    """Factory for a host with nothing installed."""

    def make():
        runner = make_runner()

        def apt_install(call):
            for package in call.command[2:]:
                runner.executables |= PROVIDES.get(package, set())
            return {}

        def shell(call):
            if "rustup" in call.command[-1]:
                runner.executables |= {"rustc", "cargo"}
            return {}

        def cargo_install(call):
            runner.executables.add("sqlx")
            return {}

        runner.sequence(("apt-get", "install"), apt_install)
        runner.sequence(("sh", "-c"), shell)
        runner.sequence(("cargo", "install", "sqlx-cli"), cargo_install)
        return runner

    return make
