"""Per-invocation workspace.

A workspace is a uniquely named temporary directory owned by exactly one
bundling run:

    <temp_root>/<prefix>-<uuid4>/
        source/    cloned project tree (build output lands in source/target)
        scratch/   bundler intermediates (control trees, AppDirs, staging)

The name is generated and the directory created before any network access, so
a run that dies mid-clone leaves an identifiable directory behind.
"""

from __future__ import annotations

import os
import shutil
import stat
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from .result import Err, Ok, Result

__all__ = [
    "Workspace",
    "WorkspaceError",
    "create_workspace",
    "remove_workspace",
]


@dataclass(frozen=True, slots=True)
class WorkspaceError:
    """Error when a workspace cannot be created or removed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class Workspace:
    """An exclusively owned temporary directory."""

    root: Path

    @property
    def source_dir(self) -> Path:
        """Path to the cloned tree."""
        return self.root / "source"

    @property
    def scratch_dir(self) -> Path:
        """Path to bundler intermediates."""
        return self.root / "scratch"


def _remove_readonly(_func: Callable[[str], object], path: str, exc: BaseException) -> None:
    """Handle read-only files on Windows (e.g. .git/objects/pack/*.idx)."""
    if isinstance(exc, PermissionError):
        os.chmod(path, stat.S_IWRITE)
        os.unlink(path)
    else:
        raise exc


def create_workspace(
    *, prefix: str, temp_root: Path | None = None
) -> Result[Workspace, WorkspaceError]:
    """Create ``<temp_root>/<prefix>-<uuid4>`` with its ``scratch`` directory.

    ``source`` is left for the clone to create, since git refuses a non-empty
    destination.
    """
    base = temp_root if temp_root is not None else Path(tempfile.gettempdir())
    root = base / f"{prefix}-{uuid4()}"
    try:
        base.mkdir(parents=True, exist_ok=True)
        root.mkdir()
        (root / "scratch").mkdir()
    except OSError as e:
        return Err(WorkspaceError(f"cannot create workspace: {e}", path=root))
    return Ok(Workspace(root=root))


def remove_workspace(workspace: Workspace) -> Result[None, WorkspaceError]:
    """Remove the workspace tree. A workspace that is already gone is fine."""
    if not workspace.root.exists():
        return Ok(None)
    try:
        shutil.rmtree(workspace.root, onexc=_remove_readonly)
    except OSError as e:
        return Err(WorkspaceError(f"cannot remove workspace: {e}", path=workspace.root))
    return Ok(None)
