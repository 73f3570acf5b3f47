"""
Package manager base — the contract every distro adapter implements.

An adapter knows two things about its package manager: how to ask
"is this installed?" and how to install.  Everything else (skipping
installed packages, elevation, error capture) is shared here.

To add a package manager:
    1. Add a member to ``PackageManagerKind``
    2. Subclass PackageManager and implement the two command builders
    3. Register it in ``provision.adapters.registry``
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import ClassVar, Iterable

from provision.adapters.shell.command import CommandRunner
from provision.core.errors import PackageQueryError
from provision.core.models.command import CommandResult
from provision.core.models.package_manager import PackageManagerKind

logger = logging.getLogger(__name__)

QUERY_TIMEOUT = 30
INSTALL_TIMEOUT = 900

# Distro package names: letters, digits and . _ + : @ - ; never a leading dash
_PACKAGE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+:@-]*$")


def validate_package_name(name: str) -> None:
    """Reject names that a package manager would parse as options or garbage."""
    if not _PACKAGE_NAME.match(name):
        raise PackageQueryError(f"Invalid package name: {name!r}")


class PackageManager(ABC):
    """Abstract base class for all package manager adapters.

    Query semantics:
        - checker exits 0            → installed
        - checker exits non-zero     → not installed
        - checker cannot run at all  → PackageQueryError

    Install never raises: failures come back as a CommandResult.
    """

    kind: ClassVar[PackageManagerKind]
    install_env: ClassVar[dict[str, str]] = {}

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    @property
    def name(self) -> str:
        return str(self.kind)

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    @abstractmethod
    def query_command(self, package: str) -> list[str]:
        """Command whose exit status tells whether ``package`` is installed."""

    @abstractmethod
    def install_commands(self, packages: list[str]) -> list[list[str]]:
        """Commands (run in order) that install ``packages``."""

    def _query_says_installed(self, result: CommandResult) -> bool:
        return result.ok

    def is_installed(self, package: str) -> bool:
        """Check whether a single package is installed.

        Raises:
            PackageQueryError: the name is malformed, or the checker
                binary is missing / timed out.
        """
        validate_package_name(package)
        result = self._runner.run(self.query_command(package), timeout=QUERY_TIMEOUT)
        if result.error:
            raise PackageQueryError(
                f"Cannot query {package} with {self.name}: {result.error}",
                exit_code=result.return_code,
            )
        return self._query_says_installed(result)

    def missing(self, packages: Iterable[str]) -> list[str]:
        """Subset of ``packages`` that is not installed, order preserved."""
        return [p for p in packages if not self.is_installed(p)]

    def install(self, *packages: str) -> CommandResult:
        """Install packages, elevating when not root.  No retries."""
        names = list(packages)
        if not names:
            return CommandResult.skip("No packages to install")
        for name in names:
            validate_package_name(name)

        logger.info("Installing %s via %s", ", ".join(names), self.name)
        result = CommandResult.skip()
        for cmd in self.install_commands(names):
            result = self._runner.run(
                cmd,
                elevate=True,
                timeout=INSTALL_TIMEOUT,
                env=dict(self.install_env) or None,
            )
            if not result.ok:
                logger.warning("%s failed (exit %d): %s", cmd[0], result.return_code, result.message)
                return result
        return result

    def ensure_installed(self, packages: Iterable[str]) -> CommandResult:
        """Install only what is missing; skip when everything is present."""
        wanted = list(packages)
        todo = self.missing(wanted)
        if not todo:
            return CommandResult.skip(f"All packages already installed: {', '.join(wanted)}")
        return self.install(*todo)

    # ── Module streams (RPM family only) ──────────────────────────

    supports_modules: ClassVar[bool] = False

    def switch_module_stream(self, module: str, stream: str) -> CommandResult:
        """Enable ``module:stream``, disabling the current stream first."""
        logger.warning("%s has no module streams; ignoring %s:%s", self.name, module, stream)
        return CommandResult.skip(f"{self.name} has no module streams")

    def disable_module(self, module: str) -> CommandResult:
        logger.warning("%s has no module streams; ignoring disable %s", self.name, module)
        return CommandResult.skip(f"{self.name} has no module streams")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} kind={self.name!r}>"
