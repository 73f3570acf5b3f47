"""
CLI commands for system packages.

Thin wrappers over the package manager adapters.
"""

from __future__ import annotations

import json
import sys

import click


def _package_manager(require_privilege: bool = False):
    from provision.adapters.privilege import detect_privilege
    from provision.adapters.registry import default_registry
    from provision.adapters.shell.command import CommandRunner

    privilege = detect_privilege()
    if require_privilege:
        privilege.require()
    return default_registry().detect(CommandRunner(privilege))


@click.group()
def packages() -> None:
    """Packages — check, install."""


@packages.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def check(names: tuple[str, ...], as_json: bool) -> None:
    """Report whether each package is installed (exit 1 if any is missing)."""
    pm = _package_manager()
    result = {name: pm.is_installed(name) for name in names}

    if as_json:
        click.echo(json.dumps({"package_manager": pm.name, "installed": result}, indent=2))
    else:
        click.secho(f"📦 {pm.name}", fg="cyan", bold=True)
        for name, installed in result.items():
            if installed:
                click.secho(f"   ✅ {name}", fg="green")
            else:
                click.secho(f"   ❌ {name} (not installed)", fg="red")

    if not all(result.values()):
        sys.exit(1)


@packages.command()
@click.argument("names", nargs=-1)
@click.option(
    "--from-file", "-f", "from_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Read package names from a file, one per line (e.g. /app/packages.txt).",
)
def install(names: tuple[str, ...], from_file: str | None) -> None:
    """Install packages that are not installed yet."""
    from provision.core.config.loader import load_package_list
    from provision.core.errors import StepFailedError

    wanted = list(names)
    if from_file:
        wanted += [n for n in load_package_list(from_file) if n not in wanted]
    if not wanted:
        raise click.UsageError("Give package NAMES or --from-file PATH.")
    names = tuple(wanted)

    pm = _package_manager(require_privilege=True)
    result = pm.ensure_installed(names)

    if not result.ok:
        raise StepFailedError(
            f"Failed to install {', '.join(names)} via {pm.name}: {result.message}",
            exit_code=result.return_code,
        )
    if result.skipped:
        click.secho("[SKIPPED]", fg="yellow", nl=False)
        click.echo(f" {result.stdout}")
    else:
        click.secho("[SUCCESS]", fg="green", nl=False)
        click.echo(f" Installed {', '.join(names)} via {pm.name}.")
