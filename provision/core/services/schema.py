"""
Schema loader — pipe a schema file into a database client.

    mongo   mongosh --host H --port P --quiet   (falls back to legacy ``mongo``)
    mysql   mysql -h H -P P -u U                (password via MYSQL_PWD)

The file is fed on stdin; there is no transactional wrapping, a
partially applied schema stays applied.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from provision.adapters.shell.command import CommandRunner
from provision.core.errors import CommandNotFoundError, StepFailedError
from provision.core.models.command import CommandResult
from provision.core.models.profile import SchemaSpec

logger = logging.getLogger(__name__)

SCHEMA_TIMEOUT = 600
MONGO_CLIENTS = ("mongosh", "mongo")


def schema_command(runner: CommandRunner, spec: SchemaSpec) -> list[str]:
    """Client argv for ``spec``.  Never contains a password.

    Raises:
        CommandNotFoundError: no client for the engine is on PATH.
    """
    port = str(spec.effective_port)
    if spec.engine == "mongo":
        for client in MONGO_CLIENTS:
            if runner.which(client):
                cmd = [client, "--host", spec.host, "--port", port]
                if client == "mongosh":
                    cmd.append("--quiet")
                return cmd
        raise CommandNotFoundError(
            f"No MongoDB shell found (tried {', '.join(MONGO_CLIENTS)})"
        )

    if not runner.which("mysql"):
        raise CommandNotFoundError("MySQL client not found: mysql")
    return ["mysql", "-h", spec.host, "-P", port, "-u", spec.user]


def load_schema(
    runner: CommandRunner,
    spec: SchemaSpec,
    password: str | None = None,
) -> CommandResult:
    """Load ``spec.file`` into the target database.

    Args:
        runner: Command runner.
        spec: Engine, host, port, file.
        password: MySQL password; defaults to ``$MYSQL_PWD``.

    Raises:
        StepFailedError: the schema file cannot be read.
        CommandNotFoundError: no client installed.
    """
    path = Path(spec.file)
    try:
        script = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StepFailedError(f"Cannot read schema file {path}: {e}") from e

    cmd = schema_command(runner, spec)
    env = None
    if spec.engine == "mysql":
        pwd = password if password is not None else os.environ.get("MYSQL_PWD")
        if pwd:
            env = {"MYSQL_PWD": pwd}
        else:
            logger.warning("MYSQL_PWD not set; connecting to %s without a password", spec.host)

    logger.info("Loading %s schema %s into %s:%s", spec.engine, path, spec.host, spec.effective_port)
    return runner.run(cmd, input_text=script, timeout=SCHEMA_TIMEOUT, env=env)
