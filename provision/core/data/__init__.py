"""
Central data registry for bundled provisioning assets.

Profiles live in ``profiles/*.yml``, systemd unit templates in
``units/*.service``, repo/config files in ``files/`` and EC2/Route53
plans in ``infra/*.yml``.  Everything
downstream (CLI, use cases) resolves bundled assets through here.

Usage::

    from provision.core.data import get_registry

    registry = get_registry()
    registry.profile_names          # ["cart", "catalogue", ...]
    registry.profile_path("cart")   # Path to cart.yml
    registry.asset_path("units/cart.service")
"""

from __future__ import annotations

import logging
from functools import cached_property
from pathlib import Path

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent

PROFILES_DIR = _DATA_DIR / "profiles"
UNITS_DIR = _DATA_DIR / "units"
FILES_DIR = _DATA_DIR / "files"
INFRA_DIR = _DATA_DIR / "infra"


class DataRegistry:
    """Lookup for bundled profiles and the assets they reference.

    The profile listing is computed once per instance.  Create one
    instance per process via :func:`get_registry`.
    """

    def __init__(self, root: Path | None = None):
        self._root = root or _DATA_DIR

    @property
    def root(self) -> Path:
        return self._root

    @cached_property
    def profile_names(self) -> list[str]:
        """Names of every bundled profile, sorted."""
        profiles_dir = self._root / "profiles"
        if not profiles_dir.is_dir():
            logger.warning("Profiles directory not found: %s", profiles_dir)
            return []
        names = sorted(p.stem for p in profiles_dir.glob("*.yml"))
        logger.debug("Found %d bundled profiles", len(names))
        return names

    def profile_path(self, name: str) -> Path | None:
        """Path to a bundled profile, or None if no such profile ships."""
        path = self._root / "profiles" / f"{name}.yml"
        return path if path.is_file() else None

    @cached_property
    def infra_names(self) -> list[str]:
        """Names of every bundled infra plan, sorted."""
        return sorted(p.stem for p in (self._root / "infra").glob("*.yml"))

    def infra_path(self, name: str) -> Path | None:
        """Path to a bundled infra plan, or None if no such plan ships."""
        path = self._root / "infra" / f"{name}.yml"
        return path if path.is_file() else None

    def asset_path(self, relative: str) -> Path:
        """Resolve an asset path relative to the data directory."""
        return self._root / relative


# ── Module-level singleton ───────────────────────────────────────

_registry: DataRegistry | None = None


def get_registry() -> DataRegistry:
    """Return the process-level DataRegistry singleton."""
    global _registry  # noqa: PLW0603
    if _registry is None:
        _registry = DataRegistry()
    return _registry
