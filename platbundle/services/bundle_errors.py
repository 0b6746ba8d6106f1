from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from platbundle.core.contracts import PackageType

AcquisitionCause = Literal["network", "authentication", "not_found", "unknown"]

BundlerFailureKind = Literal[
    "missing_icon",
    "missing_identifier",
    "missing_binary",
    "missing_asset",
    "unsupported_arch",
    "tool_missing",
    "tool_failed",
    "io_error",
]


@dataclass(frozen=True, slots=True)
class InvalidSource:
    raw: str
    reason: str


@dataclass(frozen=True, slots=True)
class MissingRepositoryUrl:
    manifest_path: Path


@dataclass(frozen=True, slots=True)
class AcquisitionFailure:
    url: str
    cause: AcquisitionCause
    detail: str


@dataclass(frozen=True, slots=True)
class InvalidManifest:
    path: Path
    field: str
    reason: str


@dataclass(frozen=True, slots=True)
class MissingPrebuiltBinary:
    path: Path


@dataclass(frozen=True, slots=True)
class BuildFailure:
    command: tuple[str, ...]
    returncode: int
    stderr: str
    message: str = ""


@dataclass(frozen=True, slots=True)
class BundlerFailure:
    platform: PackageType
    kind: BundlerFailureKind
    message: str
    stderr: str = ""


@dataclass(frozen=True, slots=True)
class DirectoryCreationFailure:
    path: Path
    reason: str


@dataclass(frozen=True, slots=True)
class MoveFailure:
    source: Path
    destination: Path
    reason: str


@dataclass(frozen=True, slots=True)
class ContractViolation:
    path: Path


@dataclass(frozen=True, slots=True)
class CleanupFailure:
    """Reported as a warning only. Not part of BundleError."""

    path: Path
    reason: str


BundleError = (
    InvalidSource
    | MissingRepositoryUrl
    | AcquisitionFailure
    | InvalidManifest
    | MissingPrebuiltBinary
    | BuildFailure
    | BundlerFailure
    | DirectoryCreationFailure
    | MoveFailure
    | ContractViolation
)
