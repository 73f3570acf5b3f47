"""
Runtime settings — resolved from environment variables.

Levels of precedence for every field:
    CLI option  >  PROVISION_* env var  >  default

SMTP credentials are read from the environment (or a password file)
and never have a default.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from provision.core.errors import ConfigError

DEFAULT_ARTIFACT_BASE_URL = "https://roboshop-builds.s3.amazonaws.com"


class SmtpSettings(BaseModel):
    """Mail relay used by the alert commands."""

    host: str = "smtp.gmail.com"
    port: int = 587
    user: str = ""
    password: str = Field(default="", repr=False)
    to: str = ""
    from_name: str = "Roboshop Resource Monitor"
    timeout: int = 30

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> SmtpSettings:
        env = os.environ if environ is None else environ
        password = env.get("SMTP_PASSWORD", "")
        password_file = env.get("SMTP_PASSWORD_FILE")
        if not password and password_file:
            path = Path(password_file)
            if path.is_file():
                password = path.read_text(encoding="utf-8").strip()
        user = env.get("SMTP_USER", "")
        try:
            return cls(
                host=env.get("SMTP_HOST", cls.model_fields["host"].default),
                port=env.get("SMTP_PORT", cls.model_fields["port"].default),
                user=user,
                password=password,
                to=env.get("ALERT_TO", user),
                from_name=env.get("ALERT_FROM_NAME", cls.model_fields["from_name"].default),
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid SMTP settings: {_first_error(e)}") from e


class Settings(BaseModel):
    """Host-wide provisioning settings."""

    app_dir: str = "/app"
    log_dir: str = "/app/logs"
    app_user: str = "roboshop"
    artifact_base_url: str = DEFAULT_ARTIFACT_BASE_URL
    command_timeout: int = 300
    download_timeout: int = 120

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides: object) -> Settings:
        """Build settings from PROVISION_* variables, then apply overrides.

        ``None`` overrides are ignored so CLI options can be passed
        straight through.
        """
        env = os.environ if environ is None else environ
        data: dict[str, object] = {}
        for field_name in cls.model_fields:
            key = f"PROVISION_{field_name.upper()}"
            if key in env:
                data[field_name] = env[key]
        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings: {_first_error(e)}") from e

    def placeholders(self) -> dict[str, str]:
        """Values available to ``${name}`` placeholders in profiles."""
        return {
            "app_dir": self.app_dir,
            "log_dir": self.log_dir,
            "app_user": self.app_user,
            "artifact_base_url": self.artifact_base_url.rstrip("/"),
        }


def _first_error(error: ValidationError) -> str:
    """``field=value: message`` for the first failing field."""
    first = error.errors()[0]
    field = ".".join(str(p) for p in first["loc"])
    return f"{field}={first.get('input')!r}: {first['msg']}"
