"""Shell-related type definitions.

This module contains the data models used by the shell engine:
- ShellType: Which interpreter a command is dispatched to
- ShellResult: Output from a single ``Shell.exec`` call
"""
from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .errors import ShellError, exit_code, is_interrupt


class ShellType(enum.Enum):
    """Interpreter selected for a command."""

    POSIX = "posix"
    CMD = "cmd"
    POWERSHELL = "powershell"


class ShellResult(BaseModel):
    """Result from a shell command execution.

    ``error`` is None exactly when the command ran and exited 0.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    stdout: str = ""
    stderr: str = ""
    error: Optional[ShellError] = None

    @property
    def exit_code(self) -> int:
        return exit_code(self.error)

    @property
    def interrupted(self) -> bool:
        return is_interrupt(self.error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def check(self) -> "ShellResult":
        """Raise the carried error, if any."""
        if self.error is not None:
            raise self.error
        return self


__all__ = [
    "ShellResult",
    "ShellType",
]
