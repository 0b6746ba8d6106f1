"""Process exit codes.

Release tooling only reads the exit status, so these values are part of the
public contract and must stay stable:

- 0: Success (with --output-binary, the artifact exists at that path)
- 1: User error (bad source string, invalid manifest, bad arguments)
- 2: Environment error (packaging tool missing, unreadable tool config)
- 3: Build error (compiler or packaging tool failed)
- 4: Network error (clone failed)
- 5: I/O error (cannot create output directory, cannot move artifact)
- 6: Internal error (move reported success but the artifact is absent)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for the bundle command."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    INTERNAL_ERROR = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
