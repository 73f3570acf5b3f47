"""Package manager adapters — one per supported distro family."""

from provision.adapters.package_managers.base import PackageManager, validate_package_name
from provision.adapters.package_managers.managers import (
    ApkPackageManager,
    AptPackageManager,
    DnfPackageManager,
    PacmanPackageManager,
    YumPackageManager,
    ZypperPackageManager,
)

__all__ = [
    "ApkPackageManager",
    "AptPackageManager",
    "DnfPackageManager",
    "PackageManager",
    "PacmanPackageManager",
    "YumPackageManager",
    "ZypperPackageManager",
    "validate_package_name",
]
