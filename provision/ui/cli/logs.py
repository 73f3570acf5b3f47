"""
CLI commands for application log housekeeping.
"""

from __future__ import annotations

import json

import click

from provision.core.services.log_purge import (
    DEFAULT_LOCK_FILE,
    DEFAULT_PATTERN,
    DEFAULT_RETENTION_DAYS,
)


@click.group()
def logs() -> None:
    """Logs — purge."""


@logs.command()
@click.option("--dir", "log_dir", default=None, help="Log directory (default: $PROVISION_LOG_DIR or /app/logs).")
@click.option("--retention-days", type=click.IntRange(min=0), default=DEFAULT_RETENTION_DAYS, show_default=True)
@click.option("--pattern", default=DEFAULT_PATTERN, show_default=True, help="File name glob.")
@click.option("--dry-run", is_flag=True, help="List what would be deleted.")
@click.option("--lock-file", default=DEFAULT_LOCK_FILE, show_default=True)
@click.option("--cleanup-log", default=None, help="Run record (default: DIR/cleanup.log).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def purge(
    log_dir: str | None,
    retention_days: int,
    pattern: str,
    dry_run: bool,
    lock_file: str,
    cleanup_log: str | None,
    as_json: bool,
) -> None:
    """Delete logs older than --retention-days."""
    from provision.core.config.settings import Settings
    from provision.core.services.log_purge import purge_old_logs

    directory = log_dir or Settings.from_env().log_dir
    report = purge_old_logs(
        directory,
        retention_days=retention_days,
        pattern=pattern,
        dry_run=dry_run,
        lock_file=lock_file,
        cleanup_log=cleanup_log,
    )

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    if report.skipped:
        click.secho("⚠️  Another cleanup is running. Exiting.", fg="yellow")
        return

    verb = "Would delete" if dry_run else "Deleted"
    for path in report.matched:
        click.echo(f"   {verb}: {path}")
    for err in report.errors:
        click.secho(f"   ❌ {err}", fg="red")
    if dry_run:
        click.secho(f"Dry-run complete. {len(report.matched)} file(s) matched. No files were deleted.", fg="cyan")
    else:
        click.secho(f"Deletion complete. {len(report.deleted)} file(s) removed.", fg="green")
