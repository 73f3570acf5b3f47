"""
Timestamped backups taken before a file is overwritten.

Backups sit next to the original as ``PATH.<YYYY-MM-DD-HH-MM-SS>.bak``
and are made with ``cp -p`` through the command runner, so they are
elevated the same way as the write that follows.  There is no
compression and no pruning.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from provision.adapters.shell.command import CommandRunner
from provision.core.errors import StepFailedError

logger = logging.getLogger(__name__)

BACKUP_TIMESTAMP = "%Y-%m-%d-%H-%M-%S"
COPY_TIMEOUT = 30

Clock = Callable[[], datetime]


def backup_path(path: Path, when: datetime) -> Path:
    """``/etc/systemd/system/cart.service`` → ``....cart.service.2025-01-31-10-02-03.bak``."""
    return path.with_name(f"{path.name}.{when.strftime(BACKUP_TIMESTAMP)}.bak")


def copy_file(runner: CommandRunner, source: Path, destination: Path) -> None:
    """Copy ``source`` over ``destination`` byte for byte (elevated).

    Raises:
        StepFailedError: ``cp`` exited non-zero; the exit code is kept.
    """
    result = runner.run(
        ["cp", "-f", str(source), str(destination)],
        elevate=True,
        timeout=COPY_TIMEOUT,
    )
    if not result.ok:
        raise StepFailedError(
            f"Copy {source} → {destination} failed: {result.message}",
            exit_code=result.return_code,
        )


def backup_file(runner: CommandRunner, path: Path, clock: Clock = datetime.now) -> Path | None:
    """Back up ``path`` if it exists.

    Returns:
        The backup path, or None when there was nothing to back up.

    Raises:
        StepFailedError: the copy failed.
    """
    if not path.exists():
        logger.debug("No existing file to back up: %s", path)
        return None

    dest = backup_path(path, clock())
    result = runner.run(["cp", "-p", str(path), str(dest)], elevate=True, timeout=COPY_TIMEOUT)
    if not result.ok:
        raise StepFailedError(
            f"Backup of {path} failed: {result.message}",
            exit_code=result.return_code,
        )
    logger.info("Backed up %s → %s", path, dest)
    return dest
