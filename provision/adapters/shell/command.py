"""
Command runner — the SINGLE PLACE where child processes are spawned.

Every host mutation (package install, useradd, unzip, systemctl, ...)
goes through ``CommandRunner.run``.  Elevation, timeouts and error
capture are centralised here.

Invariants:
- Never raises.  Missing binaries become return code 127, timeouts 124.
- Every call has a timeout; nothing blocks forever.
- Elevation prefixes ``sudo`` only when the process is not already root.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time

from provision.adapters.privilege import Privilege
from provision.core.models.command import EXIT_NOT_FOUND, EXIT_TIMEOUT, CommandResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300

# Keep captured output bounded; package managers can be chatty
_OUTPUT_TAIL = 4000


class CommandRunner:
    """Run commands and capture their output as CommandResults."""

    def __init__(self, privilege: Privilege, default_timeout: int = DEFAULT_TIMEOUT):
        self._privilege = privilege
        self._default_timeout = default_timeout

    @property
    def privilege(self) -> Privilege:
        return self._privilege

    def which(self, binary: str) -> str | None:
        """Locate a binary on PATH."""
        return shutil.which(binary)

    def run(
        self,
        argv: list[str],
        *,
        elevate: bool = False,
        timeout: int | None = None,
        input_text: str | None = None,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run ``argv`` and return its result.

        Args:
            argv: Command list (never a shell string).
            elevate: Prefix with sudo when not already root.
            timeout: Seconds before the child is killed.
            input_text: Data piped to stdin.
            cwd: Working directory for the child.
            env: Extra environment variables layered over os.environ.
        """
        cmd = list(argv)
        if elevate:
            cmd = self._privilege.prefix(env or ()) + cmd
        timeout = timeout or self._default_timeout

        child_env = None
        if env:
            child_env = os.environ.copy()
            child_env.update(env)

        logger.debug("Executing: %s (cwd=%s)", " ".join(cmd), cwd)
        start = time.monotonic()

        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                input=input_text,
                cwd=cwd,
                env=child_env,
            )
        except FileNotFoundError:
            return CommandResult.failure(
                argv=cmd,
                return_code=EXIT_NOT_FOUND,
                error=f"Command not found: {cmd[0]}",
            )
        except subprocess.TimeoutExpired:
            return CommandResult.failure(
                argv=cmd,
                return_code=EXIT_TIMEOUT,
                error=f"Command timed out after {timeout}s",
                metadata={"timeout": timeout},
            )
        except OSError as e:
            logger.warning("OS error running %s: %s", cmd[0], e)
            return CommandResult.failure(argv=cmd, error=f"Command execution error: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = proc.stdout[-_OUTPUT_TAIL:] if proc.stdout else ""
        stderr = proc.stderr[-_OUTPUT_TAIL:] if proc.stderr else ""

        if proc.returncode != 0:
            logger.debug("Exit %d from %s: %s", proc.returncode, cmd[0], stderr.strip())

        return CommandResult(
            argv=cmd,
            return_code=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            duration_ms=elapsed_ms,
        )
