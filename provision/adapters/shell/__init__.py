"""Shell adapters — child-process execution."""

from provision.adapters.shell.command import DEFAULT_TIMEOUT, CommandRunner

__all__ = ["DEFAULT_TIMEOUT", "CommandRunner"]
