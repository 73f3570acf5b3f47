"""
CLI commands for systemd service units.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click


def _runner(require_privilege: bool = True):
    from provision.adapters.privilege import detect_privilege
    from provision.adapters.shell.command import CommandRunner

    privilege = detect_privilege()
    if require_privilege:
        privilege.require()
    return CommandRunner(privilege)


@click.group()
def service() -> None:
    """Service units — deploy, status."""


@service.command()
@click.argument("name")
@click.option(
    "--template", "-t",
    type=click.Path(path_type=Path),
    required=True,
    help="Unit template (file path, or bundled asset like units/cart.service).",
)
@click.option(
    "--destination", "-d",
    type=click.Path(path_type=Path),
    default=None,
    help="Installed unit path (default: /etc/systemd/system/NAME.service).",
)
@click.pass_context
def deploy(ctx: click.Context, name: str, template: Path, destination: Path | None) -> None:
    """Back up, install, reload, enable and restart unit NAME."""
    from provision.adapters.systemd import SystemdAdapter
    from provision.core.config.loader import resolve_asset
    from provision.core.engine.runner import StepRunner
    from provision.core.models.unit import ServiceUnitSpec
    from provision.core.services.unit_deployer import ServiceUnitDeployer
    from provision.ui.cli.output import echo_receipt, echo_summary

    spec = ServiceUnitSpec(
        name=name,
        template=resolve_asset(str(template)),
        destination=destination,
    )
    runner = _runner()
    deployer = ServiceUnitDeployer(runner, SystemdAdapter(runner))
    # Fail before any step runs
    deployer.check_template(spec)

    quiet = ctx.obj.get("quiet", False)
    report = StepRunner(
        deployer.steps(spec),
        name=f"deploy {spec.unit_name}",
        on_receipt=None if quiet else echo_receipt,
    ).run()
    echo_summary(report, f"{spec.unit_name} deployment")
    if not report.all_ok:
        sys.exit(report.exit_code)


@service.command()
@click.argument("name")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def status(name: str, as_json: bool) -> None:
    """Show systemd state of unit NAME."""
    from provision.adapters.systemd import SystemdAdapter

    info = SystemdAdapter(_runner(require_privilege=False)).status(name)

    if as_json:
        click.echo(json.dumps(info, indent=2))
        return

    icon = "✅" if info["active"] else "❌"
    click.echo(f"{icon} {name}: {info['state']} ({info['sub_state']})")
    if not info["loaded"]:
        click.secho("   Unit is not loaded", fg="yellow")
