"""Exit codes shared by every imgrel command.

The numeric values are part of the CLI contract (CI steps branch on them)
and must stay stable:
- 0: Success
- 1: User error (malformed release plan, bad version, bad arguments)
- 2: Environment error (broken image registry, missing docker/cosign, config)
- 3: Build error (at least one image failed to build, push or attest)
- 4: Network error (registry login failed)
- 5: I/O error (cannot write CI output)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Process exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
