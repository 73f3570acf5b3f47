"""Adapters — bindings to host tools (package managers, systemd, shell).

Public re-exports for convenient access.
"""

from provision.adapters.mock import MockCommandRunner
from provision.adapters.privilege import Privilege, detect_privilege
from provision.adapters.registry import (
    PackageManagerRegistry,
    default_registry,
    detect_package_manager,
)
from provision.adapters.shell.command import CommandRunner
from provision.adapters.systemd import SystemdAdapter

__all__ = [
    "CommandRunner",
    "MockCommandRunner",
    "PackageManagerRegistry",
    "Privilege",
    "SystemdAdapter",
    "default_registry",
    "detect_package_manager",
    "detect_privilege",
]
