"""Error taxonomy for shell execution.

Every failure of ``Shell.exec`` is one of these types, carried in
``ShellResult.error``:

- ShellParseError: malformed shell syntax, nothing ran
- ShellBlockedError: the block policy vetoed an argv, nothing ran
- ShellExitError: the command ran and exited non-zero
- ShellStartError: the interpreter or program could not be started
- ShellInterruptedError: cancellation or deadline
"""
from __future__ import annotations

import asyncio
import concurrent.futures
from typing import Optional, Sequence


class ShellError(Exception):
    """Base error for shell execution failures."""
    pass


class ShellParseError(ShellError):
    """Raised when a command cannot be parsed."""
    pass


class ShellBlockedError(ShellError):
    """Raised when the block policy refuses a command."""

    def __init__(self, argv: Sequence[str]):
        self.argv = list(argv)
        self.command = " ".join(self.argv)
        super().__init__(f"command is not allowed for security reasons: {self.command}")


class ShellExitError(ShellError):
    """The command ran and reported a non-zero exit status."""

    def __init__(self, exit_code: int, message: Optional[str] = None):
        self.exit_code = exit_code
        super().__init__(message or f"exit status {exit_code}")


class ShellStartError(ShellError):
    """The interpreter or program could not be started."""

    def __init__(self, message: str, exit_code: int = 1):
        self.exit_code = exit_code
        super().__init__(message)


class ShellInterruptedError(ShellError):
    """The run was cancelled or its deadline expired."""

    def __init__(self, reason: str = "cancelled"):
        self.reason = reason
        super().__init__(f"command interrupted: {reason}")


_INTERRUPT_TYPES = (
    ShellInterruptedError,
    TimeoutError,
    concurrent.futures.CancelledError,
    asyncio.CancelledError,
)


def is_interrupt(err: Optional[BaseException]) -> bool:
    """Return True if ``err`` stems from cancellation or a deadline."""
    seen = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, _INTERRUPT_TYPES):
            return True
        seen.add(id(err))
        err = err.__cause__
    return False


def exit_code(err: Optional[BaseException]) -> int:
    """Extract the exit status carried by ``err``.

    0 for no error, the reported status for errors that carry one, and 1 for
    everything else (parse failures, blocked commands, interrupts).
    """
    if err is None:
        return 0
    if isinstance(err, (ShellExitError, ShellStartError)):
        return err.exit_code
    return 1


__all__ = [
    "ShellBlockedError",
    "ShellError",
    "ShellExitError",
    "ShellInterruptedError",
    "ShellParseError",
    "ShellStartError",
    "exit_code",
    "is_interrupt",
]
