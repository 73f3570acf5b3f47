"""
Host detection — what kind of machine are we about to provision?

Read-only: probes PATH, the effective uid, the init system and
``/etc/os-release``.  An unsupported package manager is reported as a
fact, not raised.
"""

from __future__ import annotations

import logging
import shlex
import socket
from pathlib import Path
from typing import Callable

from pydantic import BaseModel

from provision.adapters.privilege import Privilege, detect_privilege
from provision.adapters.registry import detect_package_manager
from provision.adapters.systemd import detect_init_system
from provision.core.errors import UnsupportedSystemError

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")


class HostFacts(BaseModel):
    """Detected host properties."""

    hostname: str = ""
    package_manager: str | None = None
    package_manager_error: str | None = None
    init_system: str = "unknown"
    privilege: str = "unprivileged"
    os_id: str = ""
    os_id_like: list[str] = []
    os_pretty_name: str = ""

    @property
    def supported(self) -> bool:
        return self.package_manager is not None


def parse_os_release(text: str) -> dict[str, str]:
    """Parse ``KEY=value`` lines (values may be shell-quoted)."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw.strip("\"'")]
        values[key.strip()] = parts[0] if parts else ""
    return values


def read_os_release(path: Path = OS_RELEASE) -> dict[str, str]:
    try:
        return parse_os_release(path.read_text(encoding="utf-8"))
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return {}


def detect_host(
    which: Callable[[str], str | None] | None = None,
    privilege: Privilege | None = None,
    os_release: Path = OS_RELEASE,
) -> HostFacts:
    """Collect host facts for ``provision detect``."""
    facts = HostFacts(
        hostname=socket.gethostname(),
        init_system=detect_init_system(),
        privilege=(privilege or detect_privilege()).describe(),
    )

    try:
        kind = detect_package_manager(which) if which else detect_package_manager()
        facts.package_manager = str(kind)
    except UnsupportedSystemError as e:
        facts.package_manager_error = str(e)

    release = read_os_release(os_release)
    facts.os_id = release.get("ID", "")
    facts.os_id_like = release.get("ID_LIKE", "").split()
    facts.os_pretty_name = release.get("PRETTY_NAME", "")
    return facts
