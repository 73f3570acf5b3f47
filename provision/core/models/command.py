"""
CommandResult — the receipt of one child process.

The shell adapters NEVER raise: a missing binary, a timeout or a
non-zero exit are all captured here.  Callers decide whether a failed
result is fatal.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

# Conventional exit codes for failures that never reached the child
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class CommandResult(BaseModel):
    """Outcome of a single command invocation."""

    argv: list[str] = Field(default_factory=list)
    return_code: int = 0

    stdout: str = ""
    stderr: str = ""
    error: str | None = None        # runner-level failure (not found, timeout)

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0
    skipped: bool = False           # nothing to do, effect already held

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the command succeeded."""
        return self.return_code == 0

    @property
    def command_line(self) -> str:
        """Human-readable rendering of argv."""
        return " ".join(self.argv)

    @property
    def message(self) -> str:
        """Best single-line explanation of a failure."""
        if self.error:
            return self.error
        tail = (self.stderr or self.stdout).strip().splitlines()
        if tail:
            return tail[-1]
        return f"Command exited with code {self.return_code}"

    @classmethod
    def success(cls, argv: list[str] | None = None, stdout: str = "", **kwargs: Any) -> CommandResult:
        """Create a success result."""
        return cls(argv=argv or [], return_code=0, stdout=stdout, **kwargs)

    @classmethod
    def failure(
        cls,
        argv: list[str] | None = None,
        return_code: int = 1,
        error: str | None = None,
        **kwargs: Any,
    ) -> CommandResult:
        """Create a failure result.  A zero code is coerced to 1."""
        return cls(
            argv=argv or [],
            return_code=return_code or 1,
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(cls, reason: str = "", **kwargs: Any) -> CommandResult:
        """Create a result for work that was not needed."""
        return cls(return_code=0, stdout=reason, skipped=True, **kwargs)
