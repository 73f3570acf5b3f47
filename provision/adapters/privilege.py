"""
Privilege context — "are we root, and can we elevate?"

Detected once per run and passed explicitly to everything that needs
to elevate a command.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from typing import Iterable

from provision.core.errors import PrivilegeDeniedError


@dataclass(frozen=True)
class Privilege:
    """Effective privilege of the current process."""

    is_root: bool
    sudo_available: bool = False

    @classmethod
    def root(cls) -> Privilege:
        return cls(is_root=True, sudo_available=False)

    @property
    def can_elevate(self) -> bool:
        return self.is_root or self.sudo_available

    def require(self) -> None:
        """Fail if privileged operations are impossible."""
        if not self.can_elevate:
            raise PrivilegeDeniedError(
                "Insufficient privileges. Run as root or install sudo."
            )

    def prefix(self, preserve_env: Iterable[str] = ()) -> list[str]:
        """Command prefix needed to run something as root.

        sudo resets the environment, so variables the child must see
        are named in ``--preserve-env``.
        """
        if self.is_root:
            return []
        names = sorted(preserve_env)
        if names:
            return ["sudo", f"--preserve-env={','.join(names)}"]
        return ["sudo"]

    def describe(self) -> str:
        if self.is_root:
            return "root"
        if self.sudo_available:
            return "sudo"
        return "unprivileged"


def detect_privilege() -> Privilege:
    """Probe effective uid and sudo availability."""
    is_root = os.geteuid() == 0
    return Privilege(
        is_root=is_root,
        sudo_available=not is_root and shutil.which("sudo") is not None,
    )
