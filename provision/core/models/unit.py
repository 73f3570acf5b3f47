"""Service unit specification — template → live systemd unit."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, model_validator

SYSTEMD_UNIT_DIR = Path("/etc/systemd/system")


class ServiceUnitSpec(BaseModel):
    """A unit template and where it goes.

    The template is copied verbatim; ``Environment=`` placeholders are
    not rendered.
    """

    name: str = Field(min_length=1)           # e.g. "cart"
    template: Path
    destination: Path | None = None

    @model_validator(mode="after")
    def _default_destination(self) -> ServiceUnitSpec:
        if self.destination is None:
            self.destination = SYSTEMD_UNIT_DIR / self.unit_name
        return self

    @property
    def unit_name(self) -> str:
        """Unit file name, e.g. ``cart.service``."""
        if "." in self.name:
            return self.name
        return f"{self.name}.service"

    @property
    def target(self) -> Path:
        assert self.destination is not None  # set by the validator
        return self.destination
