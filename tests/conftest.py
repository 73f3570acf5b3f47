"""
Shared test fixtures and configuration.
"""

from datetime import datetime
from pathlib import Path

import pytest

from provision.adapters.mock import MockCommandRunner
from provision.adapters.package_managers.managers import DnfPackageManager
from provision.adapters.systemd import SystemdAdapter
from provision.core.config.settings import Settings
from provision.core.models.command import CommandResult
from provision.core.services.steps import Host

FIXED_NOW = datetime(2025, 1, 31, 10, 2, 3)


class SimulatedPackageHost:
    """In-memory package database answering every supported package manager.

    Use ``handler`` as a MockCommandRunner handler.
    """

    # argv prefix → number of leading tokens before package names
    INSTALL_PREFIXES = {
        ("dnf", "install", "-y"): 3,
        ("yum", "install", "-y"): 3,
        ("apt-get", "install", "-y"): 3,
        ("zypper", "-n", "install"): 3,
        ("pacman", "-Sy", "--noconfirm"): 3,
        ("apk", "add", "--no-cache"): 3,
    }
    QUERY_PREFIXES = {
        ("rpm", "-q"): 2,
        ("dpkg", "-s"): 2,
        ("pacman", "-Qi"): 2,
        ("apk", "info", "-e"): 3,
    }

    def __init__(self, installed: set[str] | None = None):
        self.installed: set[str] = set(installed or ())
        self.install_calls: list[list[str]] = []

    def handler(self, argv: list[str], input_text: str | None) -> CommandResult | None:
        for prefix, skip in self.QUERY_PREFIXES.items():
            if tuple(argv[: len(prefix)]) == prefix:
                name = argv[skip]
                if name not in self.installed:
                    return CommandResult(return_code=1, stderr=f"package {name} is not installed")
                stdout = "Status: install ok installed\n" if argv[0] == "dpkg" else f"{name}-1.0\n"
                return CommandResult(return_code=0, stdout=stdout)

        for prefix, skip in self.INSTALL_PREFIXES.items():
            if tuple(argv[: len(prefix)]) == prefix:
                self.install_calls.append(argv)
                self.installed.update(argv[skip:])
                return CommandResult(return_code=0, stdout="Complete!")

        return None


@pytest.fixture
def mock_runner() -> MockCommandRunner:
    return MockCommandRunner()


@pytest.fixture
def package_db() -> SimulatedPackageHost:
    return SimulatedPackageHost()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary directory."""
    return Settings(
        app_dir=str(tmp_path / "app"),
        log_dir=str(tmp_path / "app" / "logs"),
        app_user="roboshop",
        artifact_base_url="https://artifacts.example.test",
    )


@pytest.fixture
def host(mock_runner: MockCommandRunner, settings: Settings) -> Host:
    """A dnf host where every command succeeds."""
    return Host(
        runner=mock_runner,
        package_manager=DnfPackageManager(mock_runner),
        init_system=SystemdAdapter(mock_runner),
        settings=settings,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW
