"""
CLI commands for loading database schemas.
"""

from __future__ import annotations

import click


@click.group()
def schema() -> None:
    """Database schemas — load."""


@schema.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--engine", type=click.Choice(["mongo", "mysql"]), required=True, help="Database engine.")
@click.option("--host", "db_host", required=True, help="Database host.")
@click.option("--port", type=int, default=None, help="Port (default: 27017 mongo, 3306 mysql).")
@click.option("--user", default="root", show_default=True, help="MySQL user (password from $MYSQL_PWD).")
def load(file: str, engine: str, db_host: str, port: int | None, user: str) -> None:
    """Pipe FILE into the database client."""
    from provision.adapters.privilege import detect_privilege
    from provision.adapters.shell.command import CommandRunner
    from provision.core.errors import StepFailedError
    from provision.core.models.profile import SchemaSpec
    from provision.core.services.schema import load_schema

    spec = SchemaSpec(engine=engine, host=db_host, port=port, file=file, user=user)
    result = load_schema(CommandRunner(detect_privilege()), spec)
    if not result.ok:
        raise StepFailedError(
            f"Failed to load schema {file} into {db_host}: {result.message}",
            exit_code=result.return_code,
        )
    click.secho("[SUCCESS]", fg="green", nl=False)
    click.echo(f" Schema {file} loaded into {db_host}:{spec.effective_port}.")
