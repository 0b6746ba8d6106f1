"""Git repository abstraction.

All operations go through a ``CommandRunner`` and return Result types.

Usage:
    match Repository.clone(url, dest, runner=ProcessRunner()):
        case Ok(repo):
            print(repo.head_commit())
        case Err(e):
            print(f"Clone failed: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from platbundle.core.result import Err, Ok, Result
from platbundle.platform.process import CommandRunner, ProcessError

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

__all__ = [
    "GitError",
    "Repository",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message (git's stderr when available)
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


class Repository:
    """A local git working copy.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path, *, runner: CommandRunner, git: str = "git") -> None:
        self.path = path
        self._runner = runner
        self._git = git

    @classmethod
    def clone(
        cls,
        url: str,
        dest: Path,
        *,
        runner: CommandRunner,
        depth: int | None = 1,
        git: str = "git",
        timeout: float = _GIT_NETWORK_TIMEOUT_SECONDS,
    ) -> Result[Repository, GitError]:
        """Clone ``url`` into ``dest``, which must not exist or be empty.

        Returns:
            Ok(Repository) on success
            Err(GitError) carrying git's stderr on failure
        """
        args = [git, "clone", "--quiet"]
        if depth is not None:
            args.append(f"--depth={depth}")
        args += ["--", url, str(dest)]

        result = runner.run(
            args,
            cwd=dest.parent,
            env=_non_interactive_env(),
            timeout=timeout,
        )
        match result:
            case Err(e):
                return Err(
                    GitError(
                        command="clone",
                        message=e.stderr.strip() or e.stdout.strip() or "clone failed",
                        returncode=e.returncode,
                    )
                )
            case Ok(_):
                return Ok(cls(dest, runner=runner, git=git))

    def head_commit(self) -> str | None:
        """Get the commit hash of HEAD, or None on error."""
        result = self._run(["rev-parse", "HEAD"])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        return self._runner.run(
            [self._git, "-C", str(self.path), *args], cwd=self.path, timeout=_GIT_TIMEOUT_SECONDS
        )


def _non_interactive_env() -> dict[str, str]:
    """Current environment with credential prompts disabled."""
    import os

    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env
