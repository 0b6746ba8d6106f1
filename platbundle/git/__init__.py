"""Git operations.

Usage:
    from platbundle.git import Repository

    result = Repository.clone(url, dest, runner=runner)
"""

from platbundle.git.repository import (
    GitError,
    Repository,
)

__all__ = [
    "GitError",
    "Repository",
]
