"""Invoking vs. unprivileged identity resolution.

The cluster runtime keeps its state and socket under the unprivileged user's
home directory, so cluster and user-scoped tooling commands must run as that
user even when devstack itself was started through sudo.
"""

from __future__ import annotations

import os
import pwd
from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class IdentityContext:
    """Who invoked the process and who owns user-scoped state."""

    invoking_user: str
    unprivileged_user: str
    is_elevated: bool

    @property
    def needs_user_switch(self) -> bool:
        """True when user-scoped commands must be re-targeted at another user."""
        return self.is_elevated and self.unprivileged_user != self.invoking_user


def _user_name_for_uid(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def resolve_identity(
    environ: Mapping[str, str] | None = None,
    euid: int | None = None,
) -> IdentityContext:
    """Resolve the identity context for this run.

    Args:
        environ: Environment to read SUDO_USER/USER from (default: os.environ)
        euid: Effective uid (default: os.geteuid())

    Returns:
        IdentityContext for the current process.
    """
    environ = os.environ if environ is None else environ
    euid = os.geteuid() if euid is None else euid

    if euid == 0:
        invoking_user = _user_name_for_uid(euid)
    else:
        invoking_user = environ.get("USER") or _user_name_for_uid(euid)
    sudo_user = environ.get("SUDO_USER")
    unprivileged_user = sudo_user if sudo_user and euid == 0 else invoking_user

    return IdentityContext(
        invoking_user=invoking_user,
        unprivileged_user=unprivileged_user,
        is_elevated=euid == 0,
    )
