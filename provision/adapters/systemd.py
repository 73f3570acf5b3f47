"""
Systemd adapter — init system operations consumed by the unit deployer.

Only the contract the deployer needs: daemon-reload, enable, restart,
plus a read-only status probe.  Every mutating call is elevated.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from provision.adapters.shell.command import CommandRunner
from provision.core.models.command import CommandResult

logger = logging.getLogger(__name__)

SYSTEMCTL_TIMEOUT = 120


def detect_init_system() -> str:
    """Detect the init system (systemd, openrc, initd, or unknown)."""
    if Path("/run/systemd/system").exists():
        return "systemd"
    if shutil.which("rc-service"):
        return "openrc"
    if Path("/etc/init.d").exists():
        return "initd"
    return "unknown"


class SystemdAdapter:
    """Thin wrapper over ``systemctl``."""

    name = "systemd"

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    def is_available(self) -> bool:
        return detect_init_system() == "systemd"

    def _systemctl(self, *args: str, elevate: bool = True) -> CommandResult:
        return self._runner.run(
            ["systemctl", *args],
            elevate=elevate,
            timeout=SYSTEMCTL_TIMEOUT,
        )

    def daemon_reload(self) -> CommandResult:
        return self._systemctl("daemon-reload")

    def enable(self, unit: str) -> CommandResult:
        return self._systemctl("enable", unit)

    def restart(self, unit: str) -> CommandResult:
        return self._systemctl("restart", unit)

    def is_active(self, unit: str) -> bool:
        return self._systemctl("is-active", "--quiet", unit, elevate=False).ok

    def status(self, unit: str) -> dict:
        """ActiveState / SubState / LoadState for a unit."""
        values: dict[str, str] = {}
        for prop in ("ActiveState", "SubState", "LoadState"):
            result = self._systemctl("show", unit, f"--property={prop}", elevate=False)
            key, _, val = result.stdout.strip().partition("=")
            if key:
                values[key.lower()] = val
        return {
            "service": unit,
            "active": values.get("activestate") == "active",
            "state": values.get("activestate", "unknown"),
            "sub_state": values.get("substate", "unknown"),
            "loaded": values.get("loadstate") == "loaded",
        }
