"""
CLI commands for bundled provisioning profiles.
"""

from __future__ import annotations

import json

import click
import yaml


@click.group()
def profiles() -> None:
    """Profiles — list, show."""


@profiles.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def list_profiles(as_json: bool) -> None:
    """List the profiles bundled with this package."""
    from provision.core.config.loader import load_profile
    from provision.core.data import get_registry

    rows = []
    for name in get_registry().profile_names:
        profile = load_profile(name)
        rows.append({"name": profile.name, "description": profile.description})

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    click.secho(f"📋 {len(rows)} profiles", fg="cyan", bold=True)
    for row in rows:
        click.echo(f"   • {row['name']:<18} {row['description']}")


@profiles.command()
@click.argument("profile_ref", metavar="PROFILE")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def show(profile_ref: str, as_json: bool) -> None:
    """Show a profile with placeholders expanded."""
    from provision.core.config.loader import load_profile

    profile = load_profile(profile_ref)
    data = profile.model_dump(mode="json", by_alias=True, exclude_defaults=True)

    if as_json:
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(yaml.safe_dump(data, sort_keys=False, default_flow_style=False), nl=False)
