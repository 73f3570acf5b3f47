"""
Tests for logging setup, daily transcripts and the audit ledger.
"""

import logging
from datetime import date
from pathlib import Path

import pytest

from provision.core.models import RunReport, RunStatus, StepReceipt, StepStatus
from provision.core.observability.logging_config import (
    attach_daily_log,
    daily_log_path,
    detach_log,
    setup_logging,
)
from provision.core.persistence.audit import AuditEntry, AuditWriter


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# ── Logging Tests ────────────────────────────────────────────────────


class TestSetupLogging:
    def test_console_level(self):
        setup_logging(level="INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_bad_level_falls_back(self):
        setup_logging(level="LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler_lower_level(self, tmp_path: Path):
        log_file = tmp_path / "sub" / "provision.log"
        setup_logging(level="WARNING", log_file=str(log_file), log_file_level="DEBUG")

        logging.getLogger("provision.test").debug("deep detail")
        for h in logging.getLogger().handlers:
            h.flush()

        assert logging.getLogger().level == logging.DEBUG
        assert "deep detail" in log_file.read_text()


class TestDailyLog:
    def test_path(self):
        assert daily_log_path("/app/logs", "cart", date(2025, 1, 31)) == Path("/app/logs/cart-2025-01-31.log")

    def test_transcript_receives_info(self, tmp_path: Path):
        setup_logging(level="WARNING")
        handler = attach_daily_log(tmp_path, "cart")
        logging.getLogger("provision.test").info("[SUCCESS] cart enabled.")
        detach_log(handler)

        text = daily_log_path(tmp_path, "cart").read_text()
        assert "[SUCCESS] cart enabled." in text
        assert handler not in logging.getLogger().handlers

    def test_detach_restores_root_level(self, tmp_path: Path):
        setup_logging(level="WARNING")
        handler = attach_daily_log(tmp_path, "cart")
        assert logging.getLogger().level == logging.INFO

        detach_log(handler)

        assert logging.getLogger().level == logging.WARNING

    def test_unwritable_dir(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        assert attach_daily_log(blocker / "logs", "cart") is None

    def test_detach_none(self):
        detach_log(None)


# ── Audit Tests ──────────────────────────────────────────────────────


def _aborted_report() -> RunReport:
    return RunReport(
        name="user",
        status=RunStatus.ABORTED,
        receipts=[
            StepReceipt(index=0, name="packages nodejs", status=StepStatus.SKIPPED),
            StepReceipt(index=1, name="download user.zip", status=StepStatus.FAILED, exit_code=1),
        ],
        aborted_on=1,
        exit_code=1,
    )


class TestAudit:
    def test_entry_from_report(self):
        entry = AuditEntry.from_report(_aborted_report(), package_manager="dnf")

        assert entry.profile == "user"
        assert entry.status == "aborted"
        assert entry.steps_total == 2
        assert entry.steps_skipped == 1
        assert entry.failed_step == "download user.zip"
        assert entry.run_id.startswith("run-")

    def test_append_only(self, tmp_path: Path):
        writer = AuditWriter(log_dir=tmp_path)
        writer.write(AuditEntry(profile="a"))
        writer.write(AuditEntry(profile="b"))

        assert [e.profile for e in writer.read_all()] == ["a", "b"]
        assert [e.profile for e in writer.read_recent(1)] == ["b"]
        assert writer.path == tmp_path / "provision-audit.ndjson"

    def test_corrupt_line_skipped(self, tmp_path: Path):
        path = tmp_path / "audit.ndjson"
        writer = AuditWriter(path=path)
        writer.write(AuditEntry(profile="good"))
        with path.open("a") as f:
            f.write("{not json\n")

        assert [e.profile for e in writer.read_all()] == ["good"]

    def test_unwritable_returns_false(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        writer = AuditWriter(path=blocker / "audit.ndjson")

        assert writer.write(AuditEntry(profile="x")) is False

    def test_missing_ledger_empty(self, tmp_path: Path):
        assert AuditWriter(log_dir=tmp_path / "none").read_all() == []
