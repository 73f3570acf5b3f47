"""
Package manager registry — detection and dispatch.

The registry is the single point where a ``PackageManagerKind`` turns
into an adapter instance.  Callers never branch on the kind string;
they detect once and hold the adapter.
"""

from __future__ import annotations

import logging
import shutil
from typing import Callable

from provision.adapters.package_managers.base import PackageManager
from provision.adapters.package_managers.managers import (
    ApkPackageManager,
    AptPackageManager,
    DnfPackageManager,
    PacmanPackageManager,
    YumPackageManager,
    ZypperPackageManager,
)
from provision.adapters.shell.command import CommandRunner
from provision.core.errors import UnsupportedSystemError
from provision.core.models.package_manager import DETECTION_ORDER, PackageManagerKind

logger = logging.getLogger(__name__)

Which = Callable[[str], "str | None"]


def detect_package_manager(which: Which = shutil.which) -> PackageManagerKind:
    """Probe PATH for each supported package manager, in priority order.

    Raises:
        UnsupportedSystemError: none of the binaries is present.
    """
    for kind in DETECTION_ORDER:
        if which(kind.binary):
            logger.debug("Detected package manager: %s", kind)
            return kind

    probed = ", ".join(k.binary for k in DETECTION_ORDER)
    raise UnsupportedSystemError(f"Unsupported system: none of {probed} found on PATH")


class PackageManagerRegistry:
    """Maps every PackageManagerKind to its adapter class."""

    def __init__(self) -> None:
        self._adapters: dict[PackageManagerKind, type[PackageManager]] = {}

    def register(self, adapter_cls: type[PackageManager]) -> None:
        kind = adapter_cls.kind
        if kind in self._adapters:
            logger.warning("Overwriting existing package manager adapter: %s", kind)
        self._adapters[kind] = adapter_cls
        logger.debug("Registered package manager adapter: %s", kind)

    def kinds(self) -> list[PackageManagerKind]:
        return list(self._adapters.keys())

    def missing_kinds(self) -> list[PackageManagerKind]:
        """Kinds with no registered adapter (should always be empty)."""
        return [k for k in PackageManagerKind if k not in self._adapters]

    def get(self, kind: PackageManagerKind, runner: CommandRunner) -> PackageManager:
        """Build the adapter for ``kind``."""
        try:
            adapter_cls = self._adapters[kind]
        except KeyError:
            raise UnsupportedSystemError(f"No adapter registered for package manager '{kind}'") from None
        return adapter_cls(runner)

    def detect(self, runner: CommandRunner) -> PackageManager:
        """Detect the host's package manager and build its adapter."""
        return self.get(detect_package_manager(runner.which), runner)


def default_registry() -> PackageManagerRegistry:
    """Registry with every built-in adapter."""
    registry = PackageManagerRegistry()
    for adapter_cls in (
        DnfPackageManager,
        YumPackageManager,
        AptPackageManager,
        ZypperPackageManager,
        PacmanPackageManager,
        ApkPackageManager,
    ):
        registry.register(adapter_cls)
    return registry
