"""Package manager kinds and their detection order."""

from __future__ import annotations

from enum import StrEnum


class PackageManagerKind(StrEnum):
    """Supported system package managers."""

    DNF = "dnf"
    YUM = "yum"
    APT = "apt"
    ZYPPER = "zypper"
    PACMAN = "pacman"
    APK = "apk"

    @property
    def binary(self) -> str:
        """The executable probed on PATH to detect this manager."""
        return _PROBE_BINARIES[self]

    @property
    def rpm_based(self) -> bool:
        return self in (PackageManagerKind.DNF, PackageManagerKind.YUM, PackageManagerKind.ZYPPER)


_PROBE_BINARIES: dict[PackageManagerKind, str] = {
    PackageManagerKind.DNF: "dnf",
    PackageManagerKind.YUM: "yum",
    PackageManagerKind.APT: "apt-get",
    PackageManagerKind.ZYPPER: "zypper",
    PackageManagerKind.PACMAN: "pacman",
    PackageManagerKind.APK: "apk",
}

# First match wins: dnf hosts usually also ship a yum shim
DETECTION_ORDER: tuple[PackageManagerKind, ...] = (
    PackageManagerKind.DNF,
    PackageManagerKind.YUM,
    PackageManagerKind.APT,
    PackageManagerKind.ZYPPER,
    PackageManagerKind.PACMAN,
    PackageManagerKind.APK,
)
