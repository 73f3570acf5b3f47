"""
Transcript rendering shared by the CLI commands.

Step receipts become the familiar colored status lines::

    [SUCCESS] /app directory is ready.
    [SKIPPED] User 'roboshop' already exists. Skipping user creation.
    [FAILURE] Failed to enable cart. (exit code: 5)
"""

from __future__ import annotations

from datetime import datetime

import click

from provision.core.models.step import ProvisioningStep, RunReport, StepReceipt, StepStatus

_TAGS = {
    StepStatus.SUCCEEDED: ("[SUCCESS]", "green"),
    StepStatus.SKIPPED: ("[SKIPPED]", "yellow"),
    StepStatus.FAILED: ("[FAILURE]", "red"),
    StepStatus.PENDING: ("[PLANNED]", "cyan"),
}

_RULE = "=" * 43


def box_header(title: str, started: datetime | None = None) -> None:
    stamp = (started or datetime.now()).strftime("%Y-%m-%d-%H-%M-%S")
    click.secho(_RULE, fg="blue")
    click.secho(f"{title:^43}", fg="cyan")
    click.secho(f"{'Started @ ' + stamp:^43}", fg="yellow")
    click.secho(_RULE, fg="blue")


def echo_step_start(index: int, step: ProvisioningStep) -> None:
    click.secho(f"→ {step.name}...", fg="cyan")


def echo_receipt(receipt: StepReceipt) -> None:
    tag, color = _TAGS.get(receipt.status, ("[INFO]", "white"))
    click.secho(tag, fg=color, nl=False)
    if receipt.status == StepStatus.FAILED:
        click.echo(f" {receipt.message} (exit code: {receipt.exit_code})")
        if receipt.detail:
            click.echo(f"          {receipt.detail}")
    else:
        click.echo(f" {receipt.message}")


def echo_summary(report: RunReport, title: str) -> None:
    click.echo()
    if report.all_ok:
        click.secho(f"{title} completed successfully.", fg="green", bold=True)
        click.echo(f"   {report.succeeded} changed, {report.skipped} already in place, {report.duration_ms} ms")
        return
    failed = report.failed_step
    name = failed.name if failed else "?"
    click.secho(
        f"{title} aborted at step {(report.aborted_on or 0) + 1} ({name}), "
        f"exit code {report.exit_code}.",
        fg="red",
        bold=True,
    )
