"""
Service unit deployer — template → /etc/systemd/system → running service.

Sub-steps, strictly in order:
    1. template must exist
    2. back up an existing destination (timestamped, never pruned)
    3. copy the template over the destination
    4. systemctl daemon-reload → enable <unit> → restart <unit>

Every failure raises ``StepFailedError`` carrying the failing command's
exit code unchanged.  ``steps()`` exposes the same work as runner steps
so each sub-step gets its own transcript line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from provision.adapters.shell.command import CommandRunner
from provision.adapters.systemd import SystemdAdapter
from provision.core.errors import StepFailedError
from provision.core.models.command import CommandResult
from provision.core.models.step import ProvisioningStep
from provision.core.models.unit import ServiceUnitSpec
from provision.core.services.backup import Clock, backup_file, copy_file

logger = logging.getLogger(__name__)


@dataclass
class DeployResult:
    """What a deploy changed on the host."""

    unit: str
    destination: Path
    backup_path: Path | None = None
    commands: list[str] = field(default_factory=list)


class ServiceUnitDeployer:
    """Install a unit file from its template and (re)start the service."""

    def __init__(
        self,
        runner: CommandRunner,
        init_system: SystemdAdapter,
        clock: Clock = datetime.now,
    ):
        self._runner = runner
        self._init = init_system
        self._clock = clock

    # ── Sub-steps ───────────────────────────────────────────────

    @staticmethod
    def check_template(spec: ServiceUnitSpec) -> None:
        if not spec.template.is_file():
            raise StepFailedError(f"Unit template not found: {spec.template}")

    def backup(self, spec: ServiceUnitSpec) -> Path | None:
        return backup_file(self._runner, spec.target, self._clock)

    def install(self, spec: ServiceUnitSpec) -> None:
        self.check_template(spec)
        copy_file(self._runner, spec.template, spec.target)
        logger.info("Installed %s from %s", spec.target, spec.template)

    @staticmethod
    def _check(result: CommandResult, what: str) -> CommandResult:
        if not result.ok:
            raise StepFailedError(f"{what} failed: {result.message}", exit_code=result.return_code)
        return result

    def reload(self) -> CommandResult:
        return self._check(self._init.daemon_reload(), "systemctl daemon-reload")

    def enable(self, spec: ServiceUnitSpec) -> CommandResult:
        return self._check(self._init.enable(spec.unit_name), f"systemctl enable {spec.unit_name}")

    def restart(self, spec: ServiceUnitSpec) -> CommandResult:
        return self._check(self._init.restart(spec.unit_name), f"systemctl restart {spec.unit_name}")

    # ── Entry points ────────────────────────────────────────────

    def deploy(self, spec: ServiceUnitSpec) -> DeployResult:
        """Run every sub-step; raise on the first failure."""
        self.check_template(spec)
        result = DeployResult(unit=spec.unit_name, destination=spec.target)
        result.backup_path = self.backup(spec)
        self.install(spec)
        for cmd in (self.reload(), self.enable(spec), self.restart(spec)):
            result.commands.append(cmd.command_line)
        logger.info("Deployed %s (backup: %s)", spec.unit_name, result.backup_path or "none")
        return result

    def steps(self, spec: ServiceUnitSpec) -> list[ProvisioningStep]:
        """The deploy as runner steps, one per sub-step."""
        unit = spec.unit_name
        return [
            ProvisioningStep(
                name=f"backup {unit}",
                action=lambda: self.backup(spec),
                is_satisfied=lambda: not spec.target.exists(),
                success_message=f"Backed up existing {spec.target}.",
                failure_message=f"Failed to back up {spec.target}.",
                skip_message=f"No existing {spec.target}. Skipping backup.",
            ),
            ProvisioningStep(
                name=f"install {unit}",
                action=lambda: self.install(spec),
                success_message=f"{unit} unit file installed.",
                failure_message=f"Failed to install {unit} unit file.",
            ),
            ProvisioningStep(
                name="daemon-reload",
                action=self.reload,
                success_message="Systemd daemon reloaded.",
                failure_message="Failed to reload systemd daemon.",
            ),
            ProvisioningStep(
                name=f"enable {unit}",
                action=lambda: self.enable(spec),
                success_message=f"{unit} enabled.",
                failure_message=f"Failed to enable {unit}.",
            ),
            ProvisioningStep(
                name=f"restart {unit}",
                action=lambda: self.restart(spec),
                success_message=f"{unit} restarted.",
                failure_message=f"Failed to restart {unit}.",
            ),
        ]
