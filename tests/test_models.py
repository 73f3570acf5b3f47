"""
Tests for domain models and the error taxonomy.
"""

from pathlib import Path

import pytest

from provision.core.errors import (
    CommandNotFoundError,
    ConfigError,
    ProvisionError,
    StepFailedError,
)
from provision.core.models import (
    DETECTION_ORDER,
    CommandResult,
    PackageManagerKind,
    ProvisioningProfile,
    ProvisioningStep,
    RunReport,
    RunStatus,
    SchemaSpec,
    ServiceUnitSpec,
    StepReceipt,
    StepStatus,
)

# ── Package manager kind ─────────────────────────────────────────────


class TestPackageManagerKind:
    def test_detection_order(self):
        assert [k.value for k in DETECTION_ORDER] == ["dnf", "yum", "apt", "zypper", "pacman", "apk"]

    def test_detection_order_covers_every_kind(self):
        assert set(DETECTION_ORDER) == set(PackageManagerKind)

    def test_apt_detected_by_apt_get(self):
        assert PackageManagerKind.APT.binary == "apt-get"
        assert PackageManagerKind.DNF.binary == "dnf"

    def test_rpm_based(self):
        assert PackageManagerKind.ZYPPER.rpm_based
        assert not PackageManagerKind.PACMAN.rpm_based


# ── CommandResult ────────────────────────────────────────────────────


class TestCommandResult:
    def test_success(self):
        r = CommandResult.success(["true"], stdout="ok")
        assert r.ok
        assert r.command_line == "true"

    def test_failure_never_zero(self):
        r = CommandResult.failure(["x"], return_code=0, error="boom")
        assert not r.ok
        assert r.return_code == 1

    def test_skip_is_ok(self):
        r = CommandResult.skip("nothing to do")
        assert r.ok
        assert r.skipped
        assert r.stdout == "nothing to do"

    def test_message_prefers_error(self):
        r = CommandResult(return_code=127, error="Command not found: foo", stderr="x")
        assert r.message == "Command not found: foo"

    def test_message_uses_last_stderr_line(self):
        r = CommandResult(return_code=1, stderr="line one\nline two\n")
        assert r.message == "line two"

    def test_message_fallback(self):
        assert CommandResult(return_code=3).message == "Command exited with code 3"


# ── Steps and reports ────────────────────────────────────────────────


class TestProvisioningStep:
    def test_default_messages(self):
        step = ProvisioningStep(name="install nginx", action=lambda: None)
        assert step.success_message == "install nginx completed."
        assert step.failure_message == "install nginx failed."
        assert "Skipping" in step.skip_message

    def test_explicit_messages_kept(self):
        step = ProvisioningStep(
            name="x", action=lambda: None,
            success_message="done", failure_message="broken",
        )
        assert step.success_message == "done"
        assert step.failure_message == "broken"


class TestRunReport:
    def _report(self) -> RunReport:
        return RunReport(
            name="cart",
            status=RunStatus.ABORTED,
            receipts=[
                StepReceipt(index=0, name="a", status=StepStatus.SUCCEEDED),
                StepReceipt(index=1, name="b", status=StepStatus.SKIPPED),
                StepReceipt(index=2, name="c", status=StepStatus.FAILED, message="c failed.", exit_code=7),
            ],
            aborted_on=2,
            exit_code=7,
        )

    def test_counts(self):
        report = self._report()
        assert report.total == 3
        assert report.succeeded == 1
        assert report.skipped == 1
        assert report.failed_step.name == "c"
        assert not report.all_ok

    def test_raise_for_status(self):
        with pytest.raises(StepFailedError) as exc:
            self._report().raise_for_status()
        assert exc.value.exit_code == 7
        assert "step 3: c" in str(exc.value)

    def test_raise_for_status_success(self):
        RunReport(status=RunStatus.ALL_SUCCEEDED).raise_for_status()

    def test_to_dict(self):
        data = self._report().to_dict()
        assert data["status"] == "aborted"
        assert data["failed_step"] == "c"
        assert len(data["receipts"]) == 3

    def test_receipt_ok(self):
        assert StepReceipt(index=0, name="x", status=StepStatus.SKIPPED).ok
        assert not StepReceipt(index=0, name="x", status=StepStatus.FAILED).ok


# ── Service unit ─────────────────────────────────────────────────────


class TestServiceUnitSpec:
    def test_default_destination(self):
        spec = ServiceUnitSpec(name="cart", template=Path("cart.service"))
        assert spec.target == Path("/etc/systemd/system/cart.service")
        assert spec.unit_name == "cart.service"

    def test_explicit_unit_suffix_kept(self):
        spec = ServiceUnitSpec(name="cart.service", template=Path("t"))
        assert spec.unit_name == "cart.service"

    def test_explicit_destination(self, tmp_path: Path):
        spec = ServiceUnitSpec(name="cart", template=Path("t"), destination=tmp_path / "x.service")
        assert spec.target == tmp_path / "x.service"

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            ServiceUnitSpec(name="", template=Path("t"))


# ── Profile ──────────────────────────────────────────────────────────


class TestProvisioningProfile:
    def test_schema_alias(self):
        profile = ProvisioningProfile.model_validate({
            "name": "catalogue-schema",
            "schema": {"engine": "mongo", "host": "db", "file": "/app/schema/catalogue.js"},
        })
        assert profile.schema_load is not None
        assert profile.schema_load.effective_port == 27017

    def test_service_names_include_unit(self):
        profile = ProvisioningProfile.model_validate({
            "name": "cart",
            "unit": {"name": "cart", "template": "units/cart.service"},
            "services": ["nginx"],
        })
        assert profile.service_names == ["nginx", "cart"]

    def test_mysql_default_port(self):
        spec = SchemaSpec(engine="mysql", host="db", file="x.sql")
        assert spec.effective_port == 3306

    def test_unknown_engine_rejected(self):
        with pytest.raises(ValueError):
            SchemaSpec(engine="postgres", host="db", file="x.sql")


# ── Errors ───────────────────────────────────────────────────────────


class TestErrors:
    def test_default_exit_codes(self):
        assert ProvisionError("x").exit_code == 1
        assert CommandNotFoundError("x").exit_code == 127
        assert ConfigError("x").exit_code == 2

    def test_explicit_exit_code(self):
        assert StepFailedError("x", exit_code=5).exit_code == 5

    def test_zero_exit_code_coerced(self):
        assert StepFailedError("x", exit_code=0).exit_code == 1

    def test_categories(self):
        assert ConfigError("x").category == "config"
        assert CommandNotFoundError("x").category == "command-not-found"
