"""Shell execution package.

This package runs shell commands on behalf of an agent while preserving the
working directory and environment across calls, enforcing a block policy
before anything executes, and dispatching between POSIX emulation and native
Windows shells.

Block policy model:
- Block functions see each command's argv before execution
- First match refuses the whole command; nothing is spawned
- No block functions = everything is allowed
"""
from __future__ import annotations

from .dispatch import WINDOWS_NATIVE_COMMANDS, classify_command
from .engine import Shell
from .errors import (
    ShellBlockedError,
    ShellError,
    ShellExitError,
    ShellInterruptedError,
    ShellParseError,
    ShellStartError,
    exit_code,
    is_interrupt,
)
from .handlers import ExecOutcome, ExecRequest, block_handler, compose
from .parser import command_argvs, parse_script
from .persistent import PersistentShells
from .policy import (
    BANNED_ARGUMENTS,
    BANNED_COMMANDS,
    SAFE_READ_ONLY_COMMANDS,
    BlockFunc,
    arguments_blocker,
    commands_blocker,
    default_block_funcs,
    first_blocked,
    is_safe_read_only,
)
from .types import ShellResult, ShellType

__all__ = [
    # Constants
    "BANNED_ARGUMENTS",
    "BANNED_COMMANDS",
    "SAFE_READ_ONLY_COMMANDS",
    "WINDOWS_NATIVE_COMMANDS",
    # Types
    "BlockFunc",
    "ExecOutcome",
    "ExecRequest",
    "ShellResult",
    "ShellType",
    # Errors
    "ShellBlockedError",
    "ShellError",
    "ShellExitError",
    "ShellInterruptedError",
    "ShellParseError",
    "ShellStartError",
    # Execution
    "PersistentShells",
    "Shell",
    "arguments_blocker",
    "block_handler",
    "classify_command",
    "command_argvs",
    "commands_blocker",
    "compose",
    "default_block_funcs",
    "exit_code",
    "first_blocked",
    "is_interrupt",
    "is_safe_read_only",
    "parse_script",
]
