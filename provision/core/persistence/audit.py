"""
Audit ledger — append-only record of provisioning runs.

Every ``provision run`` writes one entry to an NDJSON (newline-delimited
JSON) file next to the transcripts.  Entries are never modified or
deleted.
"""

from __future__ import annotations

import json
import logging
import socket
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from provision.core.models.step import RunReport

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "provision-audit.ndjson"


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = Field(default_factory=generate_run_id)
    host: str = Field(default_factory=socket.gethostname)

    # What ran
    profile: str = ""
    package_manager: str = ""
    dry_run: bool = False

    # Results
    status: str = ""               # all_succeeded, aborted
    exit_code: int = 0
    steps_total: int = 0
    steps_succeeded: int = 0
    steps_skipped: int = 0
    failed_step: str | None = None
    duration_ms: int = 0

    # Extensible context
    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_report(cls, report: RunReport, **kwargs: Any) -> AuditEntry:
        failed = report.failed_step
        return cls(
            profile=report.name,
            status=str(report.status),
            exit_code=report.exit_code,
            steps_total=report.total,
            steps_succeeded=report.succeeded,
            steps_skipped=report.skipped,
            failed_step=failed.name if failed else None,
            duration_ms=report.duration_ms,
            **kwargs,
        )


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None, log_dir: Path | None = None):
        if path is not None:
            self._path = path
        elif log_dir is not None:
            self._path = log_dir / DEFAULT_AUDIT_FILE
        else:
            self._path = Path(DEFAULT_AUDIT_FILE)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> bool:
        """Append an audit entry to the ledger.

        Returns False (and logs) if the ledger is not writable; auditing
        never decides the outcome of a run.
        """
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)
            return False
        logger.debug("Audit entry written: %s/%s", entry.profile, entry.run_id)
        return True

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """Read the most recent N entries."""
        return self.read_all()[-n:]
