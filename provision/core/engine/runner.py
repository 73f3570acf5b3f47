"""
Step runner — the fail-fast provisioning loop.

Takes an ordered list of steps and runs them one by one.  Before each
action, the step's ``is_satisfied`` hook decides whether the effect
already holds (→ skipped).  The first failure stops the run: later
steps are never touched, and the report's exit code is the failing
step's code.

Flow:
    steps → [is_satisfied? → action → receipt]* → report

There is no rollback: an aborted run leaves the host partially
provisioned, and re-running is the recovery path.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Callable

from provision.core.errors import ProvisionError
from provision.core.models.command import CommandResult
from provision.core.models.step import (
    ProvisioningStep,
    RunReport,
    RunStatus,
    StepReceipt,
    StepStatus,
)

logger = logging.getLogger(__name__)

ReceiptCallback = Callable[[StepReceipt], None]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class StepRunner:
    """Run steps strictly in order, aborting on the first failure."""

    def __init__(
        self,
        steps: list[ProvisioningStep],
        name: str = "",
        on_receipt: ReceiptCallback | None = None,
        on_start: Callable[[int, ProvisioningStep], None] | None = None,
    ):
        self._steps = list(steps)
        self._name = name
        self._on_receipt = on_receipt
        self._on_start = on_start
        self._status = RunStatus.NOT_STARTED

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def steps(self) -> list[ProvisioningStep]:
        return self._steps

    def run(self) -> RunReport:
        """Execute every step; never raises for step failures."""
        if self._status != RunStatus.NOT_STARTED:
            raise RuntimeError("StepRunner instances are single-use")

        self._status = RunStatus.RUNNING
        report = RunReport(name=self._name, status=RunStatus.RUNNING)
        start = time.monotonic()
        logger.info("Run '%s' started with %d steps", self._name, len(self._steps))

        for index, step in enumerate(self._steps):
            if self._on_start:
                self._on_start(index, step)

            receipt = self._run_step(index, step)
            report.receipts.append(receipt)
            self._log_receipt(receipt)
            if self._on_receipt:
                self._on_receipt(receipt)

            if receipt.status == StepStatus.FAILED:
                report.aborted_on = index
                report.exit_code = receipt.exit_code
                self._status = RunStatus.ABORTED
                break
        else:
            self._status = RunStatus.ALL_SUCCEEDED

        report.status = self._status
        report.duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Run '%s' finished: %s (exit %d, %d/%d steps)",
            self._name, report.status, report.exit_code, report.total, len(self._steps),
        )
        return report

    def _run_step(self, index: int, step: ProvisioningStep) -> StepReceipt:
        receipt = StepReceipt(index=index, name=step.name, status=StepStatus.RUNNING)
        start = time.monotonic()

        try:
            if step.is_satisfied is not None and step.is_satisfied():
                return self._finish(receipt, start, StepStatus.SKIPPED, step.skip_message)

            result = step.action()
        except ProvisionError as e:
            return self._finish(
                receipt, start, StepStatus.FAILED, step.failure_message,
                exit_code=e.exit_code, detail=str(e),
                metadata={"category": e.category},
            )
        except Exception as e:
            # Unclassified failures still end the run with a receipt
            logger.debug("Step %s raised %s", step.name, type(e).__name__, exc_info=True)
            return self._finish(
                receipt, start, StepStatus.FAILED, step.failure_message,
                exit_code=1, detail=f"{type(e).__name__}: {e}",
                metadata={"category": "unexpected-error"},
            )

        if isinstance(result, CommandResult):
            if not result.ok:
                return self._finish(
                    receipt, start, StepStatus.FAILED, step.failure_message,
                    exit_code=result.return_code, detail=result.message,
                    metadata={"command": result.command_line},
                )
            if result.skipped:
                reason = result.stdout.strip() or step.skip_message
                return self._finish(receipt, start, StepStatus.SKIPPED, reason)

        return self._finish(receipt, start, StepStatus.SUCCEEDED, step.success_message)

    @staticmethod
    def _finish(
        receipt: StepReceipt,
        start: float,
        status: StepStatus,
        message: str,
        exit_code: int = 0,
        detail: str = "",
        metadata: dict | None = None,
    ) -> StepReceipt:
        receipt.status = status
        receipt.message = message
        # A failed step never reports success to the shell
        receipt.exit_code = (exit_code or 1) if status == StepStatus.FAILED else 0
        receipt.detail = detail
        receipt.ended_at = _now_iso()
        receipt.duration_ms = int((time.monotonic() - start) * 1000)
        if metadata:
            receipt.metadata.update(metadata)
        return receipt

    @staticmethod
    def _log_receipt(receipt: StepReceipt) -> None:
        if receipt.status == StepStatus.FAILED:
            logger.error(
                "[FAILURE] %s (exit code: %d) %s",
                receipt.message, receipt.exit_code, receipt.detail,
            )
        elif receipt.status == StepStatus.SKIPPED:
            logger.info("[SKIPPED] %s", receipt.message)
        else:
            logger.info("[SUCCESS] %s", receipt.message)


def run_steps(
    steps: list[ProvisioningStep],
    name: str = "",
    on_receipt: ReceiptCallback | None = None,
) -> RunReport:
    """Convenience wrapper: build a runner and run it."""
    return StepRunner(steps, name=name, on_receipt=on_receipt).run()
