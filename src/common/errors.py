"""Exception types that end a run.

Registry lookups never raise these; they degrade instead. Anything raised
from here propagates to ``nixdraft.main`` which maps it to an exit code.
"""
from __future__ import annotations

from typing import Sequence

from constants import ExitCodes


class NixDraftError(Exception):
    """Base class for fatal pipeline errors."""

    exit_code = ExitCodes.FILE_ERROR


class ConfigError(NixDraftError):
    """Raised when the configuration file cannot be used."""


class UserAbort(NixDraftError):
    """Raised when the user declines to continue."""

    exit_code = ExitCodes.USER_ABORT


class CommandError(NixDraftError):
    """Raised when an external command exits with a non-zero status."""

    exit_code = ExitCodes.COMMAND_ERROR

    def __init__(self, argv: Sequence[str], returncode: int, stdout: str = "", stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"command {self.argv[0] if self.argv else '?'} exited with status {returncode}"
        )

    def detail(self) -> str:
        """Return the captured stderr, falling back to stdout."""
        return (self.stderr or self.stdout).strip()
