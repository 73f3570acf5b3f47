"""
Mock command runner — universal test double for host commands.

Used to simulate package managers, systemctl and friends without
touching the host.  Returns success by default; responses can be
configured per argv prefix, or computed by a handler callable.
"""

from __future__ import annotations

from typing import Callable

from provision.adapters.privilege import Privilege
from provision.adapters.shell.command import CommandRunner
from provision.core.models.command import CommandResult

Handler = Callable[[list[str], "str | None"], "CommandResult | None"]


class MockCommandRunner(CommandRunner):
    """Records every call and answers from configured responses.

    Prefix matching ignores a leading ``sudo`` so tests can configure
    ``("systemctl", "restart")`` regardless of privilege.
    """

    def __init__(
        self,
        privilege: Privilege | None = None,
        binaries: set[str] | None = None,
        handler: Handler | None = None,
    ):
        super().__init__(privilege or Privilege.root())
        self._responses: list[tuple[tuple[str, ...], CommandResult]] = []
        self._binaries = binaries
        self._handler = handler
        self._call_log: list[list[str]] = []
        self._inputs: list[str | None] = []
        self._envs: list[dict[str, str]] = []

    @property
    def call_log(self) -> list[list[str]]:
        """Every argv this mock has received (sudo prefix included)."""
        return self._call_log

    @property
    def inputs(self) -> list[str | None]:
        """stdin text passed with each call, aligned with call_log."""
        return self._inputs

    @property
    def envs(self) -> list[dict[str, str]]:
        """Extra environment passed with each call, aligned with call_log."""
        return self._envs

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls_starting_with(self, *prefix: str) -> list[list[str]]:
        """Calls whose argv (sudo stripped) starts with ``prefix``."""
        return [c for c in self._call_log if tuple(_strip_sudo(c)[: len(prefix)]) == prefix]

    def set_response(self, prefix: tuple[str, ...], result: CommandResult) -> None:
        """Answer calls starting with ``prefix``.  Later settings win."""
        self._responses.insert(0, (tuple(prefix), result))

    def set_failure(
        self,
        prefix: tuple[str, ...],
        return_code: int = 1,
        stderr: str = "mock failure",
    ) -> None:
        """Configure calls starting with ``prefix`` to fail."""
        self.set_response(
            prefix,
            CommandResult(argv=list(prefix), return_code=return_code, stderr=stderr),
        )

    def set_handler(self, handler: Handler | None) -> None:
        """Consult ``handler`` before the configured responses."""
        self._handler = handler

    def which(self, binary: str) -> str | None:
        if self._binaries is None:
            return f"/usr/bin/{binary}"
        return f"/usr/bin/{binary}" if binary in self._binaries else None

    def run(
        self,
        argv: list[str],
        *,
        elevate: bool = False,
        timeout: int | None = None,
        input_text: str | None = None,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        cmd = (self.privilege.prefix(env or ()) if elevate else []) + list(argv)
        self._call_log.append(cmd)
        self._inputs.append(input_text)
        self._envs.append(dict(env or {}))

        bare = _strip_sudo(cmd)
        if self._handler is not None:
            handled = self._handler(bare, input_text)
            if handled is not None:
                return handled.model_copy(update={"argv": cmd})

        for prefix, result in self._responses:
            if tuple(bare[: len(prefix)]) == prefix:
                return result.model_copy(update={"argv": cmd})

        return CommandResult.success(argv=cmd, metadata={"mock": True})

    def reset(self) -> None:
        """Clear call log and configured responses."""
        self._call_log.clear()
        self._inputs.clear()
        self._envs.clear()
        self._responses.clear()


def _strip_sudo(argv: list[str]) -> list[str]:
    if not argv or argv[0] != "sudo":
        return argv
    rest = argv[1:]
    while rest and rest[0].startswith("--preserve-env"):
        rest = rest[1:]
    return rest
