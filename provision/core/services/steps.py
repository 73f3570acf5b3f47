"""
Step factories — the generic, idempotent building blocks of a profile.

Each factory returns a ``ProvisioningStep`` bound to a ``Host``.  Where
the effect can be observed cheaply (directory exists, user exists,
packages installed, file identical, pattern gone) the step carries an
``is_satisfied`` check so re-runs skip it instead of repeating it.

All host mutations go through ``host.runner`` and are elevated; only
the artifact download runs unprivileged.
"""

from __future__ import annotations

import filecmp
import logging
import re
import shlex
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from provision.adapters.package_managers.base import PackageManager
from provision.adapters.privilege import Privilege
from provision.adapters.shell.command import CommandRunner
from provision.adapters.systemd import SystemdAdapter
from provision.core.config.settings import Settings
from provision.core.errors import StepFailedError
from provision.core.models.command import CommandResult
from provision.core.models.profile import ArtifactSpec, CommandSpec, ConfigEdit, SchemaSpec
from provision.core.models.step import ProvisioningStep
from provision.core.services.artifacts import download_artifact
from provision.core.services.backup import Clock, backup_file, copy_file
from provision.core.services.schema import load_schema as _load_schema

logger = logging.getLogger(__name__)

_SED_DELIMITERS = "/|#,@%"


@dataclass
class Host:
    """Everything a step needs to touch the machine."""

    runner: CommandRunner
    package_manager: PackageManager
    init_system: SystemdAdapter
    settings: Settings
    clock: Clock = datetime.now

    @property
    def privilege(self) -> Privilege:
        return self.runner.privilege

    def run(self, argv: list[str], **kwargs) -> CommandResult:
        """Elevated command, the default for host mutations."""
        kwargs.setdefault("elevate", True)
        return self.runner.run(argv, **kwargs)


# ── Filesystem and users ────────────────────────────────────────


def ensure_directory(host: Host, path: str) -> ProvisioningStep:
    return ProvisioningStep(
        name=f"directory {path}",
        action=lambda: host.run(["mkdir", "-p", path]),
        is_satisfied=lambda: Path(path).is_dir(),
        success_message=f"{path} directory is ready.",
        failure_message=f"Failed to create {path} directory.",
        skip_message=f"{path} directory already exists. Skipping creation.",
    )


def ensure_user(host: Host, user: str) -> ProvisioningStep:
    return ProvisioningStep(
        name=f"user {user}",
        action=lambda: host.run(["useradd", user]),
        is_satisfied=lambda: host.runner.run(["id", user]).ok,
        success_message=f"Application user '{user}' created successfully.",
        failure_message=f"Failed to create application user '{user}'.",
        skip_message=f"User '{user}' already exists. Skipping user creation.",
    )


def set_ownership(host: Host, path: str, user: str) -> ProvisioningStep:
    return ProvisioningStep(
        name=f"chown {path}",
        action=lambda: host.run(["chown", "-R", f"{user}:{user}", path]),
        success_message=f"Ownership of {path} set to {user} successfully.",
        failure_message=f"Failed to set ownership of {path} to {user}.",
    )


def install_file(host: Host, source: Path, destination: str, backup: bool = True) -> ProvisioningStep:
    """Copy a bundled repo/config file into place, backing up what it replaces."""
    dest = Path(destination)

    def _satisfied() -> bool:
        try:
            return dest.is_file() and source.is_file() and filecmp.cmp(source, dest, shallow=False)
        except OSError:
            # Unreadable without privileges; the elevated copy decides
            return False

    def _install() -> None:
        if not source.is_file():
            raise StepFailedError(f"Source file not found: {source}")
        if backup:
            backup_file(host.runner, dest, host.clock)
        copy_file(host.runner, source, dest)

    return ProvisioningStep(
        name=f"file {destination}",
        action=_install,
        is_satisfied=_satisfied,
        success_message=f"{dest.name} installed at {destination}.",
        failure_message=f"Failed to install {destination}.",
        skip_message=f"{destination} is already up to date. Skipping.",
    )


# ── Packages ────────────────────────────────────────────────────


def install_packages(host: Host, packages: list[str]) -> ProvisioningStep:
    pm = host.package_manager
    label = ", ".join(packages)
    return ProvisioningStep(
        name=f"packages {label}",
        action=lambda: pm.install(*pm.missing(packages)),
        is_satisfied=lambda: not pm.missing(packages),
        success_message=f"Installed {label} via {pm.name}.",
        failure_message=f"Failed to install {label}.",
        skip_message=f"{label} already installed. Skipping installation.",
    )


def switch_module_stream(host: Host, module: str, stream: str) -> ProvisioningStep:
    pm = host.package_manager
    return ProvisioningStep(
        name=f"module {module}:{stream}",
        action=lambda: pm.switch_module_stream(module, stream),
        is_satisfied=lambda: not pm.supports_modules,
        success_message=f"Enabled {module}:{stream} module stream.",
        failure_message=f"Failed to enable {module}:{stream} module stream.",
        skip_message=f"{pm.name} has no module streams. Skipping {module}:{stream}.",
    )


def disable_module(host: Host, module: str) -> ProvisioningStep:
    pm = host.package_manager
    return ProvisioningStep(
        name=f"disable module {module}",
        action=lambda: pm.disable_module(module),
        is_satisfied=lambda: not pm.supports_modules,
        success_message=f"Disabled default {module} module.",
        failure_message=f"Failed to disable default {module} module.",
        skip_message=f"{pm.name} has no module streams. Skipping {module}.",
    )


# ── Application code ────────────────────────────────────────────


def fetch_archive(host: Host, artifact: ArtifactSpec, dest: Path) -> ProvisioningStep:
    def _fetch() -> None:
        download_artifact(
            artifact.url,
            dest,
            timeout=host.settings.download_timeout,
            sha256=artifact.sha256,
        )

    return ProvisioningStep(
        name=f"download {dest.name}",
        action=_fetch,
        success_message=f"{dest.name} downloaded successfully.",
        failure_message=f"Failed to download {artifact.url}.",
    )


def extract_archive(host: Host, archive: Path, directory: str, clean: bool = False) -> ProvisioningStep:
    def _extract() -> CommandResult:
        if clean:
            result = host.run(["find", directory, "-mindepth", "1", "-delete"])
            if not result.ok:
                return result
        return host.run(["unzip", "-o", "-q", str(archive), "-d", directory])

    return ProvisioningStep(
        name=f"extract {archive.name}",
        action=_extract,
        success_message=f"{archive.name} unzipped into {directory} successfully.",
        failure_message=f"Failed to unzip {archive.name} into {directory}.",
    )


def run_as_user(host: Host, user: str, directory: str, command: str, name: str = "") -> ProvisioningStep:
    """``su - USER -s /bin/bash -c "cd DIR && CMD"``."""
    script = f"cd {shlex.quote(directory)} && {command}"
    return ProvisioningStep(
        name=name or f"build in {directory}",
        action=lambda: host.run(["su", "-", user, "-s", "/bin/bash", "-c", script]),
        success_message=f"'{command}' completed as {user}.",
        failure_message=f"'{command}' failed as {user}.",
    )


# ── Configuration ───────────────────────────────────────────────


def _sed_expression(pattern: str, replacement: str) -> str:
    for delim in _SED_DELIMITERS:
        if delim not in pattern and delim not in replacement:
            return f"s{delim}{pattern}{delim}{replacement}{delim}g"
    raise StepFailedError(f"No usable sed delimiter for pattern {pattern!r}")


def _pattern_present(path: Path, pattern: str) -> bool:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        # Unreadable without privileges; let sed decide
        return True
    return re.search(pattern, text, re.MULTILINE) is not None


def edit_config(host: Host, edit: ConfigEdit) -> ProvisioningStep:
    """``sed -i -E`` in place; skipped when the file is absent or already edited."""
    path = Path(edit.path)
    what = edit.description or f"{edit.pattern} → {edit.replacement}"

    def _satisfied() -> bool:
        return not path.exists() or not _pattern_present(path, edit.pattern)

    return ProvisioningStep(
        name=f"edit {edit.path}",
        action=lambda: host.run(["sed", "-i", "-E", _sed_expression(edit.pattern, edit.replacement), edit.path]),
        is_satisfied=_satisfied,
        success_message=f"Updated {edit.path}: {what}.",
        failure_message=f"Failed to update {edit.path}.",
        skip_message=f"{edit.path} absent or already updated. Skipping.",
    )


def run_command(host: Host, spec: CommandSpec) -> ProvisioningStep:
    """Shell command with an optional ``unless`` guard (exit 0 → skip)."""
    def _guard() -> bool:
        return host.runner.run(
            ["bash", "-c", spec.unless or "false"], elevate=spec.elevate, env=spec.env or None,
        ).ok

    return ProvisioningStep(
        name=spec.name,
        action=lambda: host.runner.run(["bash", "-c", spec.command], elevate=spec.elevate, env=spec.env or None),
        is_satisfied=_guard if spec.unless else None,
        success_message=f"{spec.name} completed successfully.",
        failure_message=f"{spec.name} failed.",
        skip_message=f"{spec.name} already done. Skipping.",
    )


# ── Services and data ───────────────────────────────────────────


def enable_and_restart(host: Host, service: str) -> ProvisioningStep:
    def _action() -> CommandResult:
        result = host.init_system.enable(service)
        if not result.ok:
            return result
        return host.init_system.restart(service)

    return ProvisioningStep(
        name=f"service {service}",
        action=_action,
        success_message=f"{service} service enabled and restarted.",
        failure_message=f"Failed to enable/restart {service} service.",
    )


def load_schema(host: Host, spec: SchemaSpec) -> ProvisioningStep:
    return ProvisioningStep(
        name=f"schema {Path(spec.file).name}",
        action=lambda: _load_schema(host.runner, spec),
        success_message=f"Schema {spec.file} loaded into {spec.host}.",
        failure_message=f"Failed to load schema {spec.file} into {spec.host}.",
    )
