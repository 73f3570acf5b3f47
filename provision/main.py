"""
Roboshop provisioning — CLI entrypoint.

Usage:
    provision --help
    provision detect
    provision run cart
    provision service deploy cart --template units/cart.service
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

import click

from provision import __version__
from provision.core.errors import ProvisionError
from provision.core.observability.logging_config import setup_logging

logger = logging.getLogger(__name__)


class ProvisionGroup(click.Group):
    """Top-level group: the single place a ProvisionError becomes an exit code."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except ProvisionError as e:
            logger.debug("Command failed (%s)", e.category, exc_info=True)
            click.secho("[FAILURE]", fg="red", nl=False, err=True)
            click.echo(f" {e} (exit code: {e.exit_code})", err=True)
            ctx.exit(e.exit_code)


@click.group(cls=ProvisionGroup)
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write full-detail logs to this file.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    log_file: str | None,
) -> None:
    """Roboshop provisioning — packages, services and app code, step by step."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("PROVISION_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=log_file or os.environ.get("PROVISION_LOG_FILE"),
        log_file_level=os.environ.get("PROVISION_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def detect(as_json: bool) -> None:
    """Detect package manager, init system, privilege and OS."""
    from provision.core.use_cases.detect import detect_host

    facts = detect_host()

    if as_json:
        click.echo(json.dumps(facts.model_dump(mode="json"), indent=2))
        return

    click.secho(f"\n🖥️  {facts.hostname}", fg="cyan", bold=True)
    if facts.os_pretty_name:
        click.echo(f"   OS:              {facts.os_pretty_name}")
    if facts.os_id:
        like = f" (like {' '.join(facts.os_id_like)})" if facts.os_id_like else ""
        click.echo(f"   ID:              {facts.os_id}{like}")
    if facts.package_manager:
        click.echo(f"   Package manager: {facts.package_manager}")
    else:
        click.secho(f"   Package manager: ❌ {facts.package_manager_error}", fg="red")
    click.echo(f"   Init system:     {facts.init_system}")
    click.echo(f"   Privilege:       {facts.privilege}")
    click.echo()


@cli.command()
@click.argument("profile_ref", metavar="PROFILE")
@click.option("--dry-run", is_flag=True, help="List the steps without running them.")
@click.option("--app-dir", default=None, help="Application root (default: /app).")
@click.option("--log-dir", default=None, help="Transcript and audit directory (default: /app/logs).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Print the run report as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    profile_ref: str,
    dry_run: bool,
    app_dir: str | None,
    log_dir: str | None,
    as_json: bool,
) -> None:
    """Provision a component from a bundled PROFILE name or a YAML path."""
    from provision.core.config.loader import load_profile
    from provision.core.config.settings import Settings
    from provision.core.observability.logging_config import attach_daily_log, detach_log
    from provision.core.persistence.audit import AuditWriter
    from provision.core.use_cases.provision import build_host, run_profile
    from provision.ui.cli.output import box_header, echo_receipt, echo_step_start, echo_summary

    settings = Settings.from_env(app_dir=app_dir, log_dir=log_dir)
    profile = load_profile(profile_ref, settings)
    host = build_host(settings, require_privilege=not dry_run)
    title = f"{profile.name} provisioning"
    quiet = ctx.obj.get("quiet", False) or as_json

    if not quiet:
        box_header(title, datetime.now())
        click.echo(f"Profile         : {profile.name}")
        click.echo(f"App Directory   : {settings.app_dir}")
        click.echo(f"Logs Directory  : {settings.log_dir}")
        click.echo(f"Package Manager : {host.package_manager.name}")
        click.echo(f"Privilege       : {host.privilege.describe()}")
        click.echo()

    transcript = None if dry_run else attach_daily_log(settings.log_dir, profile.name)
    try:
        report = run_profile(
            profile,
            host,
            on_receipt=None if quiet else echo_receipt,
            on_start=echo_step_start if ctx.obj.get("verbose") and not quiet else None,
            audit=AuditWriter(log_dir=Path(settings.log_dir)),
            dry_run=dry_run,
        )
    finally:
        detach_log(transcript)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    elif dry_run:
        for receipt in report.receipts:
            echo_receipt(receipt)
        click.secho(f"\n{report.total} steps planned. Nothing was changed.", fg="cyan")
    else:
        echo_summary(report, title)

    if not report.all_ok and not dry_run:
        sys.exit(report.exit_code)


# ── Register sub-command groups from provision/ui/cli/ ───────────

from provision.ui.cli.alert import alert  # noqa: E402
from provision.ui.cli.infra import infra  # noqa: E402
from provision.ui.cli.logs import logs  # noqa: E402
from provision.ui.cli.packages import packages  # noqa: E402
from provision.ui.cli.profiles import profiles  # noqa: E402
from provision.ui.cli.schema import schema  # noqa: E402
from provision.ui.cli.service import service  # noqa: E402

cli.add_command(packages)
cli.add_command(profiles)
cli.add_command(service)
cli.add_command(schema)
cli.add_command(alert)
cli.add_command(logs)
cli.add_command(infra)


if __name__ == "__main__":
    cli()
