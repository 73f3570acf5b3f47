"""
Error taxonomy for provisioning runs.

Every error carries the process exit code it maps to.  The CLI has a
single top-level handler (``ProvisionGroup.invoke``) that logs the
message and exits with ``exit_code``; nothing else swallows these.

"Already satisfied" is deliberately absent: a step whose effect
already holds is recorded as skipped, not raised.
"""

from __future__ import annotations


class ProvisionError(Exception):
    """Base class for all provisioning failures."""

    category = "step-failure"
    default_exit_code = 1

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        code = self.default_exit_code if exit_code is None else exit_code
        # A failure must never surface as success
        self.exit_code = code if code != 0 else 1


class CommandNotFoundError(ProvisionError):
    """A prerequisite binary is not on PATH."""

    category = "command-not-found"
    default_exit_code = 127


class PrivilegeDeniedError(ProvisionError):
    """Not root, and no sudo available to elevate."""

    category = "privilege-denied"


class NetworkError(ProvisionError):
    """A download or remote call failed."""

    category = "network-failure"


class StepFailedError(ProvisionError):
    """A provisioning sub-step exited non-zero."""

    category = "step-failure"


class UnsupportedSystemError(ProvisionError):
    """None of the supported package managers was found."""

    category = "unsupported-system"


class PackageQueryError(ProvisionError):
    """The package query itself could not run (as opposed to "not installed")."""

    category = "package-query"


class ConfigError(ProvisionError):
    """Raised when a profile or setting is invalid or missing."""

    category = "config"
    default_exit_code = 2
