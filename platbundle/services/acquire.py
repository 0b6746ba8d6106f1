"""Acquisition: clone the resolved source into the workspace.

Local sources are cloned from their declared repository too, so the caller's
tree is only ever read.
"""

from __future__ import annotations

from pathlib import Path

from platbundle.core.config import ToolConfig
from platbundle.core.result import Err, Ok, Result
from platbundle.core.workspace import Workspace
from platbundle.git.repository import GitError, Repository
from platbundle.output.console import ConsoleProtocol
from platbundle.platform.process import CommandRunner
from platbundle.services.bundle_errors import AcquisitionCause, AcquisitionFailure
from platbundle.services.source import ResolvedSource

__all__ = ["acquire", "classify_clone_failure"]

# Matched against lowercased git stderr, first hit wins.
_CAUSE_MARKERS: tuple[tuple[AcquisitionCause, tuple[str, ...]], ...] = (
    (
        "authentication",
        (
            "authentication failed",
            "permission denied",
            "could not read username",
            "could not read password",
            "terminal prompts disabled",
            "invalid username or password",
            "access denied",
            "403",
        ),
    ),
    (
        "not_found",
        (
            "not found",
            "does not exist",
            "does not appear to be a git repository",
            "404",
        ),
    ),
    (
        "network",
        (
            "could not resolve host",
            "failed to connect",
            "connection refused",
            "connection timed out",
            "network is unreachable",
            "timed out",
            "unable to access",
            "ssl",
            "early eof",
            "the remote end hung up",
        ),
    ),
)


def classify_clone_failure(error: GitError) -> AcquisitionCause:
    """Name the upstream cause of a failed clone from git's message."""
    text = error.message.lower()
    for cause, markers in _CAUSE_MARKERS:
        if any(marker in text for marker in markers):
            return cause
    return "unknown"


def acquire(
    source: ResolvedSource,
    workspace: Workspace,
    *,
    runner: CommandRunner,
    config: ToolConfig,
    console: ConsoleProtocol,
) -> Result[Path, AcquisitionFailure]:
    """Clone ``source`` into ``workspace.source_dir``.

    Returns:
        Ok(path to the cloned tree) or Err(AcquisitionFailure)
    """
    url = source.clone_url
    console.info(f"cloning {url}")
    console.debug(f"workspace: {workspace.root}")

    result = Repository.clone(
        url,
        workspace.source_dir,
        runner=runner,
        depth=config.source.clone_depth,
        git=config.tools.executable("git"),
        timeout=config.timeouts.clone,
    )
    match result:
        case Err(e):
            return Err(AcquisitionFailure(url=url, cause=classify_clone_failure(e), detail=e.message))
        case Ok(repo):
            commit = repo.head_commit()
            if commit:
                console.debug(f"HEAD {commit}")
            return Ok(repo.path)
