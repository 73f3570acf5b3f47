"""
Provisioning profile — one roboshop component, declared in YAML.

Loaded from ``profiles/<name>.yml``, a profile says what the host must
look like once the component is provisioned.  The step builder in
``provision.core.use_cases.provision`` expands it into an ordered list
of idempotent steps.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

# Digest algorithms accepted in ``algo:hex`` checksums, with their hex length
CHECKSUM_ALGORITHMS = {"sha256": 64, "sha1": 40, "md5": 32}


def parse_checksum(value: str) -> tuple[str, str]:
    """Split ``algo:hex`` (or bare SHA-256 hex) into ``(algo, hex)``.

    Raises:
        ValueError: unsupported algorithm or malformed digest.
    """
    algo, _, digest = value.strip().rpartition(":")
    algo = (algo or "sha256").lower()
    if algo not in CHECKSUM_ALGORITHMS:
        supported = ", ".join(CHECKSUM_ALGORITHMS)
        raise ValueError(f"unsupported checksum algorithm '{algo}' (supported: {supported})")
    digest = digest.lower()
    if len(digest) != CHECKSUM_ALGORITHMS[algo] or any(c not in "0123456789abcdef" for c in digest):
        raise ValueError(f"malformed {algo} digest '{digest}'")
    return algo, digest


class FileCopy(BaseModel):
    """A file shipped with the profile and installed on the host."""

    source: str          # bundled asset path (e.g. files/mongo.repo) or absolute
    destination: str
    backup: bool = True


class ArtifactSpec(BaseModel):
    """A versioned zip archive fetched from the artifact store."""

    url: str
    sha256: str | None = None
    download_to: str = ""            # default: /tmp/<profile>.zip

    @field_validator("sha256")
    @classmethod
    def _valid_checksum(cls, v: str | None) -> str | None:
        if v:
            parse_checksum(v)
        return v or None


class AppSpec(BaseModel):
    """Application code checkout under the app directory."""

    directory: str
    user: str = ""                   # default: the settings app user
    artifact: ArtifactSpec | None = None
    build: str | None = None         # run as ``user`` inside ``directory``
    clean_before_extract: bool = False


class ConfigEdit(BaseModel):
    """In-place regex replacement in a config file (e.g. bind address)."""

    path: str
    pattern: str
    replacement: str
    description: str = ""


class CommandSpec(BaseModel):
    """An arbitrary command with an optional idempotence check.

    When ``unless`` exits 0, the effect is considered present and the
    command is skipped.  Secrets go in ``env`` and are referenced from
    the command as plain ``$NAME``; they never appear in argv.
    """

    name: str
    command: str
    unless: str | None = None
    elevate: bool = True
    env: dict[str, str] = Field(default_factory=dict)


class UnitRef(BaseModel):
    """Systemd unit deployed from a bundled template."""

    name: str
    template: str                    # bundled asset path or absolute
    destination: str | None = None


class SchemaSpec(BaseModel):
    """Schema file piped into a database client."""

    engine: Literal["mongo", "mysql"]
    host: str
    port: int | None = None
    file: str
    user: str = "root"
    client_package: str | None = None

    @property
    def effective_port(self) -> int:
        if self.port is not None:
            return self.port
        return 27017 if self.engine == "mongo" else 3306


class ProvisioningProfile(BaseModel):
    """Root profile identity — loaded from a profile YAML file."""

    name: str
    description: str = ""

    # Repository setup that is a command rather than a file (release RPMs, vendor scripts)
    repo_commands: list[CommandSpec] = Field(default_factory=list)
    repo_files: list[FileCopy] = Field(default_factory=list)
    disable_modules: list[str] = Field(default_factory=list)
    module_streams: dict[str, str] = Field(default_factory=dict)
    packages: list[str] = Field(default_factory=list)

    app: AppSpec | None = None
    config_files: list[FileCopy] = Field(default_factory=list)
    config_edits: list[ConfigEdit] = Field(default_factory=list)
    commands: list[CommandSpec] = Field(default_factory=list)

    unit: UnitRef | None = None
    services: list[str] = Field(default_factory=list)
    schema_load: SchemaSpec | None = Field(default=None, alias="schema")

    # Directory the profile was loaded from; relative assets resolve here first
    source_dir: str = Field(default="", exclude=True)

    model_config = {"populate_by_name": True}

    @property
    def service_names(self) -> list[str]:
        """Every service this profile leaves running."""
        names = list(self.services)
        if self.unit and self.unit.name not in names:
            names.append(self.unit.name)
        return names
