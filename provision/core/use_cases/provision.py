"""
Provision use case — profile → ordered steps → fail-fast run → audit.

Step order is fixed:
    1. repo commands and files, module disables/streams, packages
    2. app dir, logs dir, app user, ownership
    3. artifact download, extract, ownership, build
    4. config files/edits, unit deploy, plain services, commands, schema

The host bundle is built once per run (privilege, package manager,
init system) and shared by every step.
"""

from __future__ import annotations

import logging
from pathlib import Path

from provision.adapters.privilege import detect_privilege
from provision.adapters.registry import PackageManagerRegistry, default_registry
from provision.adapters.shell.command import CommandRunner
from provision.adapters.systemd import SystemdAdapter, detect_init_system
from provision.core.config.loader import resolve_asset
from provision.core.config.settings import Settings
from provision.core.engine.runner import ReceiptCallback, StepRunner
from provision.core.models.profile import ProvisioningProfile
from provision.core.models.step import ProvisioningStep, RunReport, RunStatus, StepReceipt
from provision.core.models.unit import ServiceUnitSpec
from provision.core.persistence.audit import AuditEntry, AuditWriter
from provision.core.services import steps as st
from provision.core.services.unit_deployer import ServiceUnitDeployer

logger = logging.getLogger(__name__)


def build_host(
    settings: Settings,
    registry: PackageManagerRegistry | None = None,
    runner: CommandRunner | None = None,
    require_privilege: bool = True,
) -> st.Host:
    """Detect privilege and package manager and assemble the host bundle.

    Raises:
        PrivilegeDeniedError: not root and no sudo.
        UnsupportedSystemError: no supported package manager.
    """
    if runner is None:
        privilege = detect_privilege()
        if require_privilege:
            privilege.require()
        runner = CommandRunner(privilege, default_timeout=settings.command_timeout)
    registry = registry or default_registry()
    package_manager = registry.detect(runner)
    init_system = SystemdAdapter(runner)
    if not init_system.is_available():
        logger.warning("Init system is %s, not systemd; service steps will fail", detect_init_system())
    return st.Host(
        runner=runner,
        package_manager=package_manager,
        init_system=init_system,
        settings=settings,
    )


def _packages(profile: ProvisioningProfile) -> list[str]:
    packages = list(profile.packages)
    client = profile.schema_load.client_package if profile.schema_load else None
    if client and client not in packages:
        packages.append(client)
    return packages


def build_steps(profile: ProvisioningProfile, host: st.Host) -> list[ProvisioningStep]:
    """Expand ``profile`` into its ordered step list."""
    settings = host.settings
    base_dir = Path(profile.source_dir) if profile.source_dir else None
    steps: list[ProvisioningStep] = []

    # 1. Repositories and packages
    for command in profile.repo_commands:
        steps.append(st.run_command(host, command))
    for repo in profile.repo_files:
        steps.append(st.install_file(host, resolve_asset(repo.source, base_dir), repo.destination, repo.backup))
    for module in profile.disable_modules:
        steps.append(st.disable_module(host, module))
    for module, stream in profile.module_streams.items():
        steps.append(st.switch_module_stream(host, module, stream))
    packages = _packages(profile)
    if packages:
        steps.append(st.install_packages(host, packages))

    # 2. Base application layout
    steps.append(st.ensure_directory(host, settings.app_dir))
    steps.append(st.ensure_directory(host, settings.log_dir))
    steps.append(st.ensure_user(host, settings.app_user))
    steps.append(st.set_ownership(host, settings.app_dir, settings.app_user))

    # 3. Application code
    app = profile.app
    if app is not None:
        steps.append(st.ensure_directory(host, app.directory))
        if app.artifact is not None:
            archive = Path(app.artifact.download_to or f"/tmp/{profile.name}.zip")
            steps.append(st.fetch_archive(host, app.artifact, archive))
            steps.append(st.extract_archive(host, archive, app.directory, clean=app.clean_before_extract))
        user = app.user or settings.app_user
        steps.append(st.set_ownership(host, app.directory, user))
        if app.build:
            steps.append(st.run_as_user(host, user, app.directory, app.build, name=f"build {profile.name}"))

    # 4. Configuration, services, data
    for conf in profile.config_files:
        steps.append(st.install_file(host, resolve_asset(conf.source, base_dir), conf.destination, conf.backup))
    for edit in profile.config_edits:
        steps.append(st.edit_config(host, edit))
    if profile.unit is not None:
        spec = ServiceUnitSpec(
            name=profile.unit.name,
            template=resolve_asset(profile.unit.template, base_dir),
            destination=Path(profile.unit.destination) if profile.unit.destination else None,
        )
        deployer = ServiceUnitDeployer(host.runner, host.init_system, host.clock)
        steps.extend(deployer.steps(spec))
    for service in profile.services:
        steps.append(st.enable_and_restart(host, service))
    # Commands may need the services above running (user setup, root password)
    for command in profile.commands:
        steps.append(st.run_command(host, command))
    if profile.schema_load is not None:
        steps.append(st.load_schema(host, profile.schema_load))

    logger.debug("Profile '%s' expanded to %d steps", profile.name, len(steps))
    return steps


def plan(profile: ProvisioningProfile, host: st.Host) -> RunReport:
    """Dry run: every step listed as pending, nothing executed."""
    steps = build_steps(profile, host)
    return RunReport(
        name=profile.name,
        status=RunStatus.NOT_STARTED,
        receipts=[StepReceipt(index=i, name=s.name, message=s.success_message) for i, s in enumerate(steps)],
    )


def run_profile(
    profile: ProvisioningProfile,
    host: st.Host,
    on_receipt: ReceiptCallback | None = None,
    on_start=None,
    audit: AuditWriter | None = None,
    dry_run: bool = False,
) -> RunReport:
    """Run ``profile`` on ``host`` and record the outcome in the audit ledger.

    Returns the report; step failures never raise here.  The caller
    turns an aborted report into an exit code.
    """
    if dry_run:
        report = plan(profile, host)
    else:
        runner = StepRunner(
            build_steps(profile, host),
            name=profile.name,
            on_receipt=on_receipt,
            on_start=on_start,
        )
        report = runner.run()

    if audit is not None:
        audit.write(
            AuditEntry.from_report(
                report,
                package_manager=host.package_manager.name,
                dry_run=dry_run,
                context={
                    "app_dir": host.settings.app_dir,
                    "privilege": host.privilege.describe(),
                },
            )
        )
    return report
