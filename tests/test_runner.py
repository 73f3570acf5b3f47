"""
Tests for the fail-fast step runner.
"""

import pytest

from provision.core.engine.runner import StepRunner, run_steps
from provision.core.errors import CommandNotFoundError, StepFailedError
from provision.core.models import CommandResult, ProvisioningStep, RunStatus, StepStatus


def _recording_step(name: str, calls: list[str], result: CommandResult | None = None) -> ProvisioningStep:
    def action():
        calls.append(name)
        return result

    return ProvisioningStep(name=name, action=action)


# ── Fail-fast Tests ──────────────────────────────────────────────────


class TestFailFast:
    def test_failure_stops_later_steps(self):
        calls: list[str] = []
        steps = [
            _recording_step("one", calls),
            _recording_step("two", calls),
            _recording_step("three", calls, CommandResult.failure(["false"], return_code=42)),
            _recording_step("four", calls),
            _recording_step("five", calls),
        ]

        report = StepRunner(steps, name="demo").run()

        assert calls == ["one", "two", "three"]
        assert report.status == RunStatus.ABORTED
        assert report.exit_code == 42
        assert report.aborted_on == 2
        assert report.total == 3
        assert report.failed_step.name == "three"

    def test_all_succeed(self):
        calls: list[str] = []
        report = run_steps([_recording_step(n, calls) for n in ("a", "b")], name="ok")

        assert calls == ["a", "b"]
        assert report.status == RunStatus.ALL_SUCCEEDED
        assert report.exit_code == 0
        assert report.all_ok

    def test_empty_run_succeeds(self):
        report = StepRunner([]).run()
        assert report.status == RunStatus.ALL_SUCCEEDED
        assert report.total == 0

    def test_failure_message_and_detail(self):
        step = ProvisioningStep(
            name="enable cart",
            action=lambda: CommandResult.failure(["systemctl"], return_code=5, stderr="Unit not found"),
            failure_message="Failed to enable cart.",
        )

        report = StepRunner([step]).run()
        receipt = report.receipts[0]

        assert receipt.status == StepStatus.FAILED
        assert receipt.message == "Failed to enable cart."
        assert receipt.exit_code == 5
        assert receipt.detail == "Unit not found"


# ── Exception mapping Tests ──────────────────────────────────────────


class TestExceptionMapping:
    def test_provision_error_becomes_failed_receipt(self):
        def boom():
            raise CommandNotFoundError("unzip missing")

        report = StepRunner([ProvisioningStep(name="extract", action=boom)]).run()
        receipt = report.receipts[0]

        assert receipt.status == StepStatus.FAILED
        assert receipt.exit_code == 127
        assert receipt.detail == "unzip missing"
        assert receipt.metadata["category"] == "command-not-found"

    def test_zero_exit_code_forced_to_one(self):
        def raises_zero():
            err = StepFailedError("odd")
            err.exit_code = 0
            raise err

        report = StepRunner([ProvisioningStep(name="odd", action=raises_zero)]).run()
        assert report.exit_code == 1

    def test_unexpected_exception_becomes_failed_receipt(self):
        calls: list[str] = []

        def bug():
            raise KeyError("bug")

        steps = [
            ProvisioningStep(name="bug", action=bug, failure_message="Bug step failed."),
            _recording_step("after", calls),
        ]

        report = StepRunner(steps).run()

        assert calls == []
        assert report.status == RunStatus.ABORTED
        assert report.exit_code == 1
        receipt = report.receipts[0]
        assert receipt.status == StepStatus.FAILED
        assert receipt.message == "Bug step failed."
        assert receipt.detail.startswith("KeyError")
        assert receipt.metadata["category"] == "unexpected-error"

    def test_failing_satisfied_check_fails_step(self):
        def check():
            raise PermissionError("denied")

        step = ProvisioningStep(name="x", action=lambda: None, is_satisfied=check)

        report = StepRunner([step]).run()

        assert report.status == RunStatus.ABORTED
        assert "PermissionError: denied" in report.receipts[0].detail


# ── Skip Tests ───────────────────────────────────────────────────────


class TestSkip:
    def test_satisfied_step_never_runs_action(self):
        calls: list[str] = []
        step = ProvisioningStep(
            name="create user",
            action=lambda: calls.append("ran"),
            is_satisfied=lambda: True,
            skip_message="User already exists. Skipping.",
        )

        report = StepRunner([step]).run()

        assert calls == []
        assert report.receipts[0].status == StepStatus.SKIPPED
        assert report.receipts[0].message == "User already exists. Skipping."
        assert report.all_ok

    def test_skip_result_uses_reason(self):
        step = ProvisioningStep(name="install", action=lambda: CommandResult.skip("All packages already installed"))
        receipt = StepRunner([step]).run().receipts[0]

        assert receipt.status == StepStatus.SKIPPED
        assert receipt.message == "All packages already installed"

    def test_guard_raising_fails_step(self):
        def guard():
            raise StepFailedError("cannot check", exit_code=9)

        step = ProvisioningStep(name="g", action=lambda: None, is_satisfied=guard)
        report = StepRunner([step]).run()

        assert report.exit_code == 9

    def test_skip_does_not_stop_run(self):
        calls: list[str] = []
        steps = [
            ProvisioningStep(name="a", action=lambda: calls.append("a"), is_satisfied=lambda: True),
            _recording_step("b", calls),
        ]
        report = StepRunner(steps).run()

        assert calls == ["b"]
        assert report.skipped == 1
        assert report.succeeded == 1


# ── Lifecycle Tests ──────────────────────────────────────────────────


class TestLifecycle:
    def test_single_use(self):
        runner = StepRunner([])
        runner.run()
        with pytest.raises(RuntimeError):
            runner.run()

    def test_callbacks_in_order(self):
        events: list[str] = []
        steps = [ProvisioningStep(name=n, action=lambda: None) for n in ("a", "b")]

        StepRunner(
            steps,
            on_start=lambda i, s: events.append(f"start:{s.name}"),
            on_receipt=lambda r: events.append(f"done:{r.name}:{r.status}"),
        ).run()

        assert events == ["start:a", "done:a:succeeded", "start:b", "done:b:succeeded"]

    def test_status_transitions(self):
        runner = StepRunner([ProvisioningStep(name="a", action=lambda: None)])
        assert runner.status == RunStatus.NOT_STARTED
        runner.run()
        assert runner.status == RunStatus.ALL_SUCCEEDED
