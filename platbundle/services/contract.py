"""Artifact delivery and workspace lifetime.

With an output path, success means a regular file exists at exactly that
path: ancestors are created, the artifact is moved (never copied) over any
existing file, and the result is checked afterwards. Without one, the
artifact goes to the release directory and nothing is asserted.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeAlias

from platbundle.core.contracts import Artifact, ContractOutcome
from platbundle.core.result import Err, Ok, Result
from platbundle.core.workspace import Workspace, remove_workspace
from platbundle.output.console import ConsoleProtocol
from platbundle.platform.files import move_into_place
from platbundle.platform.paths import user_data_dir
from platbundle.services.bundle_errors import (
    CleanupFailure,
    ContractViolation,
    DirectoryCreationFailure,
    MoveFailure,
)
from platbundle.services.manifest import ProjectMetadata

__all__ = ["DeliveryError", "default_release_dir", "deliver", "workspace_scope"]

DeliveryError: TypeAlias = DirectoryCreationFailure | MoveFailure | ContractViolation


def default_release_dir() -> Path:
    return user_data_dir() / "releases"


@contextmanager
def workspace_scope(workspace: Workspace, console: ConsoleProtocol) -> Iterator[Workspace]:
    """Remove ``workspace`` on every exit path. Removal problems only warn."""
    try:
        yield workspace
    finally:
        removed = remove_workspace(workspace)
        if isinstance(removed, Err):
            failure = CleanupFailure(path=workspace.root, reason=removed.error.message)
            console.warning(f"cleanup: could not remove {failure.path}: {failure.reason}")
        else:
            console.debug(f"removed workspace {workspace.root}")


def _move(artifact: Artifact, destination: Path) -> Result[None, DirectoryCreationFailure | MoveFailure]:
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return Err(DirectoryCreationFailure(path=destination.parent, reason=str(e)))
    if destination.is_dir():
        return Err(MoveFailure(artifact.source_path, destination, "destination is a directory"))
    try:
        move_into_place(artifact.source_path, destination)
    except OSError as e:
        return Err(MoveFailure(artifact.source_path, destination, str(e)))
    return Ok(None)


def deliver(
    artifact: Artifact,
    output_path: Path | None,
    *,
    metadata: ProjectMetadata,
    release_dir: Path | None = None,
) -> Result[ContractOutcome, DeliveryError]:
    """Move ``artifact`` out of the workspace.

    Args:
        artifact: Finished package inside the workspace.
        output_path: Exact destination requested by the caller, or None.
        metadata: Names the release subdirectory when ``output_path`` is None.
        release_dir: Overrides the default release directory.
    """
    if output_path is None:
        base = release_dir if release_dir is not None else default_release_dir()
        destination = base / metadata.binary_name / metadata.version / artifact.source_path.name
        moved = _move(artifact, destination)
        if isinstance(moved, Err):
            return moved
        return Ok(
            ContractOutcome(
                final_path=destination,
                success=True,
                contract_asserted=False,
                size_bytes=artifact.size_bytes,
                sha256=artifact.sha256,
            )
        )

    destination = output_path.expanduser().absolute()
    moved = _move(artifact, destination)
    if isinstance(moved, Err):
        return moved
    if not destination.is_file():
        return Err(ContractViolation(path=destination))
    return Ok(
        ContractOutcome(
            final_path=destination,
            success=True,
            contract_asserted=True,
            size_bytes=artifact.size_bytes,
            sha256=artifact.sha256,
        )
    )
