"""
Configuration loader — reads profile YAML into domain models.

This is the primary entry point for loading provisioning profiles.
It reads YAML, expands ``${name}`` placeholders, validates against
the Pydantic schema and returns a typed profile.

A profile reference is either the name of a bundled profile
(``cart``) or a path to a YAML file.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from provision.core.config.settings import Settings
from provision.core.data import get_registry
from provision.core.errors import ConfigError
from provision.core.models.infra import InfraPlan
from provision.core.models.profile import ProvisioningProfile

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def expand_placeholders(value: Any, variables: dict[str, str]) -> Any:
    """Recursively replace ``${name}`` and ``${name:-default}`` in strings.

    Lookup order: ``variables`` first, then the process environment,
    then the inline default.  Unknown names without a default are left
    untouched so the shell running a command can still expand them, and
    bare ``$name`` references are never touched.
    """
    if isinstance(value, str):
        def _sub(match: re.Match[str]) -> str:
            key, default = match.group(1), match.group(2)
            if key in variables:
                return variables[key]
            if key in os.environ:
                return os.environ[key]
            return default if default is not None else match.group(0)

        return _PLACEHOLDER.sub(_sub, value)
    if isinstance(value, list):
        return [expand_placeholders(v, variables) for v in value]
    if isinstance(value, dict):
        return {k: expand_placeholders(v, variables) for k, v in value.items()}
    return value


def resolve_profile_path(ref: str) -> Path:
    """Turn a profile name or path into an existing file path.

    Raises:
        ConfigError: neither a bundled profile nor an existing file.
    """
    candidate = Path(ref)
    if candidate.suffix in (".yml", ".yaml") or os.sep in ref:
        if not candidate.is_file():
            raise ConfigError(f"Profile file not found: {candidate}")
        return candidate

    bundled = get_registry().profile_path(ref)
    if bundled is None:
        known = ", ".join(get_registry().profile_names) or "none"
        raise ConfigError(f"Unknown profile '{ref}'. Bundled profiles: {known}")
    return bundled


def load_profile(ref: str | Path, settings: Settings | None = None) -> ProvisioningProfile:
    """Load and validate a provisioning profile.

    Args:
        ref: Bundled profile name, or path to a YAML file.
        settings: Source of placeholder values (default: from env).

    Returns:
        Validated ProvisioningProfile.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    settings = settings or Settings.from_env()
    path = resolve_profile_path(str(ref))
    logger.debug("Loading profile from %s", path)

    data = _read_mapping(path)
    data.setdefault("name", path.stem)
    data["source_dir"] = str(path.parent.resolve())
    data = expand_placeholders(data, settings.placeholders())

    try:
        profile = ProvisioningProfile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid profile {path}: {e}") from e

    logger.info("Loaded profile '%s' from %s", profile.name, path)
    return profile


def resolve_asset(ref: str, base_dir: Path | None = None) -> Path:
    """Resolve a file referenced by a profile.

    Absolute paths are used as-is.  Relative paths are tried against
    ``base_dir`` (the profile's directory) and then the bundled data
    directory.
    """
    path = Path(ref)
    if path.is_absolute():
        return path
    if base_dir is not None and (base_dir / path).exists():
        return base_dir / path
    return get_registry().asset_path(ref)


def load_infra_plan(ref: str | Path) -> InfraPlan:
    """Load an infra plan: a bundled name (``roboshop``) or a YAML path.

    ``${NAME:-default}`` placeholders resolve from the environment, so
    account-specific ids can be supplied without editing the file.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    ref = str(ref)
    candidate = Path(ref)
    if candidate.suffix in (".yml", ".yaml") or os.sep in ref:
        path = candidate
    else:
        path = get_registry().infra_path(ref)
        if path is None:
            known = ", ".join(get_registry().infra_names) or "none"
            raise ConfigError(f"Unknown infra plan '{ref}'. Bundled plans: {known}")
    if not path.is_file():
        raise ConfigError(f"Infra plan not found: {path}")

    data = expand_placeholders(_read_mapping(path), {})
    try:
        plan = InfraPlan.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid infra plan {path}: {e}") from e

    logger.info("Loaded infra plan from %s (%d services)", path, len(plan.services))
    return plan


def _read_mapping(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def load_package_list(path: str | Path) -> list[str]:
    """Package names from a text file, one per line.

    Blank lines and ``#`` comments are ignored, surrounding whitespace
    is trimmed and duplicates are dropped (first occurrence wins).

    Raises:
        ConfigError: the file is missing or lists no packages.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Packages file not found: {path}", exit_code=1)
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", exit_code=1) from e

    names: list[str] = []
    for line in lines:
        name = line.strip()
        if name and not name.startswith("#") and name not in names:
            names.append(name)
    if not names:
        raise ConfigError(f"No packages found in {path} (after filtering).", exit_code=1)
    logger.debug("Read %d package names from %s", len(names), path)
    return names
