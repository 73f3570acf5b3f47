"""
CLI commands for threshold alert e-mails (cron-friendly).

Exit 0 when nothing is breached or the mail went out; non-zero only
when the check or the delivery failed.
"""

from __future__ import annotations

import json

import click


def _deliver(report, dry_run: bool, as_json: bool) -> None:
    from provision.core.config.settings import SmtpSettings
    from provision.core.services.alerts import send_alert

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))

    if not report.breached:
        if not as_json:
            click.secho("✅ All thresholds OK", fg="green")
        return

    if dry_run:
        if not as_json:
            click.secho(f"Subject: {report.subject}", fg="yellow", bold=True)
            click.echo()
            click.echo(report.body)
            click.secho("(dry run, not sent)", fg="yellow")
        return

    smtp = SmtpSettings.from_env()
    send_alert(report, smtp)
    if not as_json:
        click.secho(f"📧 Alert sent to {smtp.to or smtp.user}: {report.subject}", fg="yellow")


def _runner():
    from provision.adapters.privilege import detect_privilege
    from provision.adapters.shell.command import CommandRunner

    return CommandRunner(detect_privilege())


@click.group()
def alert() -> None:
    """Alerts — disk, resources."""


@alert.command()
@click.option("--mount", default="/", show_default=True, help="Filesystem to watch.")
@click.option("--threshold", type=click.IntRange(0, 100), default=80, show_default=True, help="Used % that triggers.")
@click.option("--dry-run", is_flag=True, help="Print the alert instead of sending it.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def disk(mount: str, threshold: int, dry_run: bool, as_json: bool) -> None:
    """Mail an alert when disk usage on MOUNT reaches THRESHOLD %."""
    from provision.core.services.alerts import check_disk

    _deliver(check_disk(mount, threshold, runner=_runner()), dry_run, as_json)


@alert.command()
@click.option("--cpu", "cpu_threshold", type=click.IntRange(0, 100), default=80, show_default=True,
              help="CPU used % that triggers.")
@click.option("--mem", "mem_threshold", type=click.IntRange(0, 100), default=80, show_default=True,
              help="Memory used % that triggers.")
@click.option("--sample-secs", type=click.FloatRange(0.1, 60), default=2, show_default=True,
              help="CPU sampling window.")
@click.option("--dry-run", is_flag=True, help="Print the alert instead of sending it.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def resources(cpu_threshold: int, mem_threshold: int, sample_secs: float, dry_run: bool, as_json: bool) -> None:
    """Mail an alert when CPU or memory usage reaches its threshold."""
    from provision.core.services.alerts import check_resources

    report = check_resources(cpu_threshold, mem_threshold, sample_secs, runner=_runner())
    _deliver(report, dry_run, as_json)
