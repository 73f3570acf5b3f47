"""
Provisioning step and run models.

A ``ProvisioningStep`` wraps one host-level side effect.  The runner
evaluates ``is_satisfied`` first; when it returns True the action is
never called and the step is recorded as skipped.

Per-step lifecycle:
    pending → running → {succeeded, skipped, failed}

Run lifecycle:
    not_started → running → {all_succeeded, aborted}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Callable

from pydantic import BaseModel, Field

from provision.core.models.command import CommandResult


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class StepStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class RunStatus(StrEnum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    ALL_SUCCEEDED = "all_succeeded"
    ABORTED = "aborted"


# An action may return a CommandResult, None (plain success) or raise
# a ProvisionError.
StepAction = Callable[[], "CommandResult | None"]


@dataclass
class ProvisioningStep:
    """A named unit of idempotent host-configuration work."""

    name: str
    action: StepAction
    success_message: str = ""
    failure_message: str = ""
    is_satisfied: Callable[[], bool] | None = None
    skip_message: str = ""

    def __post_init__(self) -> None:
        if not self.success_message:
            self.success_message = f"{self.name} completed."
        if not self.failure_message:
            self.failure_message = f"{self.name} failed."
        if not self.skip_message:
            self.skip_message = f"{self.name}: already done. Skipping."


class StepReceipt(BaseModel):
    """Outcome of one step."""

    index: int
    name: str
    status: StepStatus = StepStatus.PENDING

    message: str = ""
    exit_code: int = 0
    detail: str = ""               # stderr tail / error text on failure

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status in (StepStatus.SUCCEEDED, StepStatus.SKIPPED)


@dataclass
class RunReport:
    """Result of running a step list."""

    name: str = ""
    status: RunStatus = RunStatus.NOT_STARTED
    receipts: list[StepReceipt] = field(default_factory=list)
    aborted_on: int | None = None
    exit_code: int = 0
    duration_ms: int = 0

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.status == StepStatus.SUCCEEDED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.status == StepStatus.SKIPPED)

    @property
    def failed_step(self) -> StepReceipt | None:
        if self.aborted_on is None:
            return None
        return self.receipts[self.aborted_on]

    @property
    def all_ok(self) -> bool:
        return self.status == RunStatus.ALL_SUCCEEDED

    def raise_for_status(self) -> None:
        """Raise StepFailedError if the run aborted."""
        from provision.core.errors import StepFailedError

        failed = self.failed_step
        if failed is not None:
            raise StepFailedError(
                f"{failed.message} (step {failed.index + 1}: {failed.name})",
                exit_code=self.exit_code,
            )

    def to_dict(self) -> dict:
        failed = self.failed_step
        return {
            "name": self.name,
            "status": str(self.status),
            "exit_code": self.exit_code,
            "total": self.total,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "aborted_on": self.aborted_on,
            "failed_step": failed.name if failed else None,
            "duration_ms": self.duration_ms,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }
