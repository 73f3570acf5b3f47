"""
CLI commands for roboshop infrastructure on AWS.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime

import click


def _clients(region: str):
    from provision.core.services.infra import make_clients

    return make_clients(region)


@click.group()
def infra() -> None:
    """Infrastructure — EC2 instances and Route53 records."""


@infra.command()
@click.argument("plan_ref", metavar="PLAN", default="roboshop")
@click.option("--service", "-s", "services", multiple=True, help="Only these services (repeatable).")
@click.option("--dry-run", is_flag=True, help="List the steps without calling AWS.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Print records and report as JSON.")
@click.pass_context
def launch(ctx: click.Context, plan_ref: str, services: tuple[str, ...], dry_run: bool, as_json: bool) -> None:
    """Launch one EC2 instance per service in PLAN and publish DNS records."""
    from provision.core.config.loader import load_infra_plan
    from provision.core.engine.runner import StepRunner
    from provision.core.errors import ConfigError
    from provision.core.services.infra import InfraLauncher
    from provision.ui.cli.output import box_header, echo_receipt, echo_summary

    plan = load_infra_plan(plan_ref)
    if services:
        try:
            plan = plan.select(list(services))
        except ValueError as e:
            raise ConfigError(f"Unknown service: {e}") from e

    quiet = ctx.obj.get("quiet", False) or as_json
    if dry_run:
        launcher = InfraLauncher(plan, ec2=None, route53=None)
        for step in launcher.steps():
            click.secho("[PLANNED]", fg="cyan", nl=False)
            click.echo(f" {step.name}")
        click.secho(f"\n{len(plan.services)} instance(s) planned. Nothing was launched.", fg="cyan")
        return

    ec2, route53 = _clients(plan.region)
    launcher = InfraLauncher(plan, ec2=ec2, route53=route53)

    if not quiet:
        box_header("Roboshop Infra", datetime.now())
        click.echo(f"AWS Region      : {plan.region}")
        click.echo(f"Domain Name     : {plan.domain_name}")
        click.echo(f"Hosted Zone ID  : {plan.hosted_zone_id}")
        click.echo(f"AMI / SG / Key  : {plan.ami_id} / {plan.security_group_id} / {plan.key_name}")
        click.echo()

    report = StepRunner(
        launcher.steps(),
        name="infra",
        on_receipt=None if quiet else echo_receipt,
    ).run()

    if as_json:
        click.echo(json.dumps({
            "instances": [r.model_dump() for r in launcher.records.values()],
            "report": report.to_dict(),
        }, indent=2))
    else:
        _echo_instances(launcher.records.values())
        echo_summary(report, "Roboshop infra setup")

    if not report.all_ok:
        sys.exit(report.exit_code)


def _echo_instances(records) -> None:
    click.echo()
    click.secho("================= SUMMARY =================", fg="blue")
    click.secho(f"{'Service':<12}{'Instance ID':<22}{'Private IP':<16}{'Public IP':<16}", fg="cyan")
    for r in records:
        click.echo(
            f"{r.service:<12}{r.instance_id or 'N/A':<22}"
            f"{r.private_ip or 'N/A':<16}{r.public_ip or 'N/A':<16}"
        )
    click.secho("=" * 43, fg="blue")
