"""
Tests for retention-based log purging.
"""

import fcntl
import os
import time
from pathlib import Path

import pytest

from provision.core.errors import ConfigError
from provision.core.services.log_purge import find_expired, is_expired, purge_old_logs

DAY = 86400
NOW = 1_750_000_000.0


def _age(path: Path, days: float) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("line\n")
    ts = NOW - days * DAY
    os.utime(path, (ts, ts))
    return path


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    d = tmp_path / "logs"
    _age(d / "old.log", 20)
    _age(d / "nested" / "older.log", 30)
    _age(d / "fresh.log", 1)
    _age(d / "old.txt", 20)
    return d


@pytest.fixture
def lock_file(tmp_path: Path) -> Path:
    return tmp_path / "purge.lock"


# ── Age Tests ────────────────────────────────────────────────────────


class TestAge:
    def test_whole_days_strictly_greater(self, tmp_path: Path):
        assert not is_expired(_age(tmp_path / "a.log", 14.9), 14, NOW)
        assert is_expired(_age(tmp_path / "b.log", 15.0), 14, NOW)

    def test_find_expired_recursive_with_pattern(self, log_dir: Path):
        found = find_expired(log_dir, 14, "*.log", NOW)
        assert [p.name for p in found] == ["older.log", "old.log"]

    def test_symlinks_ignored(self, log_dir: Path):
        (log_dir / "link.log").symlink_to(log_dir / "old.log")
        names = [p.name for p in find_expired(log_dir, 14, "*.log", NOW)]
        assert "link.log" not in names


# ── Purge Tests ──────────────────────────────────────────────────────


class TestPurge:
    def test_deletes_expired_only(self, log_dir: Path, lock_file: Path):
        report = purge_old_logs(log_dir, 14, lock_file=lock_file, now=NOW)

        assert not (log_dir / "old.log").exists()
        assert not (log_dir / "nested" / "older.log").exists()
        assert (log_dir / "fresh.log").exists()
        assert (log_dir / "old.txt").exists()
        assert len(report.deleted) == 2
        assert report.errors == []

    def test_dry_run_keeps_files(self, log_dir: Path, lock_file: Path):
        report = purge_old_logs(log_dir, 14, dry_run=True, lock_file=lock_file, now=NOW)

        assert len(report.matched) == 2
        assert report.deleted == []
        assert (log_dir / "old.log").exists()
        assert "Dry-run complete" in (log_dir / "cleanup.log").read_text()

    def test_cleanup_log_written(self, log_dir: Path, lock_file: Path, tmp_path: Path):
        cleanup = tmp_path / "audit" / "cleanup.log"
        purge_old_logs(log_dir, 14, lock_file=lock_file, cleanup_log=cleanup, now=NOW)

        text = cleanup.read_text()
        assert str(log_dir / "old.log") in text
        assert "Deletion complete. 2 file(s) removed." in text

    def test_cleanup_log_never_purged(self, log_dir: Path, lock_file: Path):
        _age(log_dir / "cleanup.log", 40)

        report = purge_old_logs(log_dir, 14, lock_file=lock_file, now=NOW)

        assert str(log_dir / "cleanup.log") not in report.deleted
        assert (log_dir / "cleanup.log").exists()

    def test_custom_pattern(self, log_dir: Path, lock_file: Path):
        report = purge_old_logs(log_dir, 14, pattern="*.txt", lock_file=lock_file, now=NOW)
        assert report.deleted == [str(log_dir / "old.txt")]

    def test_missing_dir(self, tmp_path: Path, lock_file: Path):
        with pytest.raises(ConfigError) as exc:
            purge_old_logs(tmp_path / "nope", lock_file=lock_file)
        assert exc.value.exit_code == 1

    def test_concurrent_run_skipped(self, log_dir: Path, lock_file: Path):
        with open(lock_file, "w") as held:
            fcntl.flock(held, fcntl.LOCK_EX | fcntl.LOCK_NB)

            report = purge_old_logs(log_dir, 14, lock_file=lock_file, now=NOW)

        assert report.skipped
        assert (log_dir / "old.log").exists()

    def test_real_clock(self, tmp_path: Path, lock_file: Path):
        d = tmp_path / "live"
        d.mkdir()
        old = d / "app.log"
        old.write_text("x")
        ts = time.time() - 20 * DAY
        os.utime(old, (ts, ts))

        report = purge_old_logs(d, 14, lock_file=lock_file)

        assert report.deleted == [str(old)]
