"""
Concrete package manager adapters — one class per PackageManagerKind.

  kind     install                                    query
  dnf      dnf install -y PKG                         rpm -q PKG
  yum      yum install -y PKG                         rpm -q PKG
  apt      apt-get update -y; apt-get install -y PKG  dpkg -s PKG
  zypper   zypper -n install PKG                      rpm -q PKG
  pacman   pacman -Sy --noconfirm PKG                 pacman -Qi PKG
  apk      apk add --no-cache PKG                     apk info -e PKG
"""

from __future__ import annotations

import logging

from provision.adapters.package_managers.base import INSTALL_TIMEOUT, PackageManager
from provision.core.models.command import CommandResult
from provision.core.models.package_manager import PackageManagerKind

logger = logging.getLogger(__name__)


class _RpmQueryMixin:
    def query_command(self, package: str) -> list[str]:
        return ["rpm", "-q", package]


class _ModuleStreamMixin:
    """``dnf``/``yum`` module handling (e.g. nodejs:18, mysql)."""

    supports_modules = True

    def _module(self, *args: str) -> CommandResult:
        binary = self.kind.binary  # type: ignore[attr-defined]
        return self._runner.run(  # type: ignore[attr-defined]
            [binary, "module", *args],
            elevate=True,
            timeout=INSTALL_TIMEOUT,
        )

    def switch_module_stream(self, module: str, stream: str) -> CommandResult:
        result = self._module("disable", "-y", module)
        if not result.ok:
            return result
        return self._module("enable", "-y", f"{module}:{stream}")

    def disable_module(self, module: str) -> CommandResult:
        return self._module("disable", "-y", module)


class DnfPackageManager(_ModuleStreamMixin, _RpmQueryMixin, PackageManager):
    kind = PackageManagerKind.DNF

    def install_commands(self, packages: list[str]) -> list[list[str]]:
        return [["dnf", "install", "-y", *packages]]


class YumPackageManager(_ModuleStreamMixin, _RpmQueryMixin, PackageManager):
    kind = PackageManagerKind.YUM

    def install_commands(self, packages: list[str]) -> list[list[str]]:
        return [["yum", "install", "-y", *packages]]


class AptPackageManager(PackageManager):
    kind = PackageManagerKind.APT
    install_env = {"DEBIAN_FRONTEND": "noninteractive"}

    def query_command(self, package: str) -> list[str]:
        return ["dpkg", "-s", package]

    def _query_says_installed(self, result: CommandResult) -> bool:
        # dpkg -s exits 0 for removed-but-configured packages too
        return result.ok and "install ok installed" in result.stdout

    def install_commands(self, packages: list[str]) -> list[list[str]]:
        return [
            ["apt-get", "update", "-y"],
            ["apt-get", "install", "-y", *packages],
        ]


class ZypperPackageManager(_RpmQueryMixin, PackageManager):
    kind = PackageManagerKind.ZYPPER

    def install_commands(self, packages: list[str]) -> list[list[str]]:
        return [["zypper", "-n", "install", *packages]]


class PacmanPackageManager(PackageManager):
    kind = PackageManagerKind.PACMAN

    def query_command(self, package: str) -> list[str]:
        return ["pacman", "-Qi", package]

    def install_commands(self, packages: list[str]) -> list[list[str]]:
        return [["pacman", "-Sy", "--noconfirm", *packages]]


class ApkPackageManager(PackageManager):
    kind = PackageManagerKind.APK

    def query_command(self, package: str) -> list[str]:
        return ["apk", "info", "-e", package]

    def install_commands(self, packages: list[str]) -> list[list[str]]:
        return [["apk", "add", "--no-cache", *packages]]
