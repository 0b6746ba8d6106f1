"""Request and outcome types shared by every pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

__all__ = [
    "Artifact",
    "BundleRequest",
    "ContractOutcome",
    "PackageType",
]


class PackageType(StrEnum):
    """Native package format to produce."""

    DEB = "deb"
    RPM = "rpm"
    APPIMAGE = "appimage"
    APP = "app"
    DMG = "dmg"
    MSI = "msi"
    NSIS = "nsis"

    @classmethod
    def parse(cls, value: str) -> PackageType | None:
        """Parse a CLI value, accepting the historical aliases."""
        normalized = value.strip().lower()
        normalized = _ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return None

    @classmethod
    def choices(cls) -> tuple[str, ...]:
        return tuple(p.value for p in cls)

    @property
    def is_windows(self) -> bool:
        return self in (PackageType.MSI, PackageType.NSIS)


_ALIASES: dict[str, str] = {
    "macos-bundle": "app",
    "exe": "nsis",
}


@dataclass(frozen=True, slots=True)
class BundleRequest:
    """One bundling invocation.

    Attributes:
        source: Local path, ``org/repo`` shorthand, or git URL.
        platform: Format to produce.
        output_path: Exact destination of the artifact. When set, success
            guarantees a regular file exists there.
        skip_build: Use an already-built binary instead of compiling.
        target_triple: Compiler target; host architecture when unset.
        binary_name: Overrides the manifest's binary name.
        version: Overrides the manifest's version.
    """

    source: str
    platform: PackageType
    output_path: Path | None = None
    skip_build: bool = False
    target_triple: str | None = None
    binary_name: str | None = None
    version: str | None = None


@dataclass(frozen=True, slots=True)
class Artifact:
    """A finished package still inside the workspace."""

    source_path: Path
    platform: PackageType
    size_bytes: int
    sha256: str


@dataclass(frozen=True, slots=True)
class ContractOutcome:
    """Where the artifact ended up.

    ``contract_asserted`` is True only when the caller named an output path and
    the post-move check confirmed a regular file there.
    """

    final_path: Path
    success: bool
    contract_asserted: bool
    size_bytes: int
    sha256: str
