"""
Log purge — delete application logs past their retention window.

Age follows ``find -mtime +N``: a file qualifies when its age in whole
days is strictly greater than ``retention_days``.  Runs are serialised
by a non-blocking exclusive lock; a second concurrent purge returns at
once with ``skipped=True``.  Every run is appended to a cleanup log.
"""

from __future__ import annotations

import fcntl
import fnmatch
import logging
import socket
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from provision.core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 14
DEFAULT_PATTERN = "*.log"
DEFAULT_LOCK_FILE = "/var/lock/purge_old_logs.lock"
CLEANUP_LOG_NAME = "cleanup.log"

_SECONDS_PER_DAY = 86400


@dataclass
class PurgeReport:
    """What a purge matched and removed."""

    log_dir: str
    dry_run: bool = False
    skipped: bool = False
    matched: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "log_dir": self.log_dir,
            "dry_run": self.dry_run,
            "skipped": self.skipped,
            "matched": self.matched,
            "deleted": self.deleted,
            "errors": self.errors,
        }


def is_expired(path: Path, retention_days: int, now: float | None = None) -> bool:
    """``find -mtime +N``: whole days of age strictly greater than N."""
    now = time.time() if now is None else now
    age = now - path.stat().st_mtime
    return int(age // _SECONDS_PER_DAY) > retention_days


def find_expired(
    log_dir: Path,
    retention_days: int,
    pattern: str = DEFAULT_PATTERN,
    now: float | None = None,
) -> list[Path]:
    """Regular files under ``log_dir`` (recursive) matching ``pattern`` and expired."""
    return sorted(
        p for p in log_dir.rglob("*")
        if p.is_file() and not p.is_symlink()
        and fnmatch.fnmatch(p.name, pattern)
        and is_expired(p, retention_days, now)
    )


def _record(cleanup_log: Path, lines: list[str]) -> None:
    stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    try:
        cleanup_log.parent.mkdir(parents=True, exist_ok=True)
        with cleanup_log.open("a", encoding="utf-8") as f:
            for line in lines:
                f.write(f"{stamp} {line}\n")
    except OSError as e:
        logger.warning("Cannot write cleanup log %s: %s", cleanup_log, e)


def purge_old_logs(
    log_dir: str | Path,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    pattern: str = DEFAULT_PATTERN,
    dry_run: bool = False,
    lock_file: str | Path = DEFAULT_LOCK_FILE,
    cleanup_log: str | Path | None = None,
    now: float | None = None,
) -> PurgeReport:
    """Delete (or, with ``dry_run``, list) expired logs in ``log_dir``.

    Raises:
        ConfigError: ``log_dir`` is not a directory (exit 1), or the lock
            file cannot be opened (exit 2).
    """
    log_dir = Path(log_dir)
    cleanup = Path(cleanup_log) if cleanup_log else log_dir / CLEANUP_LOG_NAME
    report = PurgeReport(log_dir=str(log_dir), dry_run=dry_run)

    lock_path = Path(lock_file)
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_fd = open(lock_path, "w")
    except OSError as e:
        raise ConfigError(f"Cannot open lock file {lock_path}: {e}") from e

    with lock_fd:
        try:
            fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            logger.warning("Another cleanup is running. Exiting.")
            report.skipped = True
            return report

        if not log_dir.is_dir():
            raise ConfigError(f"Log directory not found: {log_dir}", exit_code=1)

        logger.info(
            "Host: %s | Dir: %s | Keep: %dd | Pattern: %s | Dry-run: %s",
            socket.gethostname(), log_dir, retention_days, pattern, dry_run,
        )
        lines: list[str] = []
        for path in find_expired(log_dir, retention_days, pattern, now):
            # The cleanup log lives in the same directory; never purge it mid-run
            if path.resolve() == cleanup.resolve():
                continue
            report.matched.append(str(path))
            lines.append(str(path))
            if dry_run:
                continue
            try:
                path.unlink()
                report.deleted.append(str(path))
            except OSError as e:
                logger.warning("Cannot delete %s: %s", path, e)
                report.errors.append(f"{path}: {e}")

        if dry_run:
            lines.append("[INFO]  Dry-run complete. No files were deleted.")
        else:
            lines.append(f"[INFO]  Deletion complete. {len(report.deleted)} file(s) removed.")
        _record(cleanup, lines)
        logger.info(lines[-1].removeprefix("[INFO]  "))

    return report
