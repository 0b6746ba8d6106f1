"""Error presentation utilities.

Centralized error formatting and exit code mapping. Every message names the
pipeline stage that failed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from platbundle.core.errors import ErrorCode
from platbundle.output.console import Style
from platbundle.services.bundle_errors import (
    AcquisitionFailure,
    BuildFailure,
    BundleError,
    BundlerFailure,
    ContractViolation,
    DirectoryCreationFailure,
    InvalidManifest,
    InvalidSource,
    MissingPrebuiltBinary,
    MissingRepositoryUrl,
    MoveFailure,
)

if TYPE_CHECKING:
    from platbundle.output.console import ConsoleProtocol

__all__ = ["bundle_error_exit_code", "print_bundle_error"]

# Lines of tool stderr echoed with an error.
_STDERR_TAIL = 40


def _print_stderr(stderr: str, console: ConsoleProtocol) -> None:
    lines = stderr.strip().splitlines()
    if not lines:
        return
    if len(lines) > _STDERR_TAIL:
        console.print(f"... ({len(lines) - _STDERR_TAIL} lines omitted)", Style.ERROR)
        lines = lines[-_STDERR_TAIL:]
    for line in lines:
        console.print(line, Style.ERROR)


def print_bundle_error(error: BundleError, console: ConsoleProtocol) -> None:
    """Print a bundle error to the error stream."""
    match error:
        case InvalidSource(raw=raw, reason=reason):
            console.error(f"source: invalid source '{raw}': {reason}")
        case MissingRepositoryUrl(manifest_path=path):
            console.error(f"source: no repository URL in {path}")
            console.print("hint: set package.repository in Cargo.toml", Style.DIM)
        case AcquisitionFailure(url=url, cause=cause, detail=detail):
            console.error(f"acquire: clone of {url} failed ({cause.replace('_', ' ')})")
            _print_stderr(detail, console)
        case InvalidManifest(path=path, field=field, reason=reason):
            console.error(f"manifest: {path}: {field}: {reason}")
        case MissingPrebuiltBinary(path=path):
            console.error(f"build: --no-build given but no binary at {path}")
        case BuildFailure(command=command, returncode=rc, stderr=stderr, message=message):
            console.error(f"build: {message or ' '.join(command)} (exit {rc})")
            _print_stderr(stderr, console)
        case BundlerFailure(platform=platform, kind=kind, message=message, stderr=stderr):
            console.error(f"bundle[{platform}]: {kind}: {message}")
            _print_stderr(stderr, console)
        case DirectoryCreationFailure(path=path, reason=reason):
            console.error(f"deliver: cannot create directory {path}: {reason}")
        case MoveFailure(source=src, destination=dst, reason=reason):
            console.error(f"deliver: cannot move {src} to {dst}: {reason}")
        case ContractViolation(path=path):
            console.error(f"deliver: move reported success but {path} is not a file")
            console.print("this is a bug in platbundle", Style.DIM)


def bundle_error_exit_code(error: BundleError) -> int:
    """Get exit code for a bundle error."""
    match error:
        case InvalidSource() | MissingRepositoryUrl() | InvalidManifest():
            return int(ErrorCode.USER_ERROR)
        case MissingPrebuiltBinary():
            return int(ErrorCode.USER_ERROR)
        case AcquisitionFailure():
            return int(ErrorCode.NETWORK_ERROR)
        case BuildFailure():
            return int(ErrorCode.BUILD_ERROR)
        case BundlerFailure(kind=kind):
            if kind == "tool_missing":
                return int(ErrorCode.ENV_ERROR)
            if kind == "tool_failed":
                return int(ErrorCode.BUILD_ERROR)
            if kind == "io_error":
                return int(ErrorCode.IO_ERROR)
            return int(ErrorCode.USER_ERROR)
        case DirectoryCreationFailure() | MoveFailure():
            return int(ErrorCode.IO_ERROR)
        case ContractViolation():
            return int(ErrorCode.INTERNAL_ERROR)
    # Fallback for exhaustiveness
    return int(ErrorCode.INTERNAL_ERROR)
