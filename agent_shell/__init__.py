"""agent-shell: command execution core for coding agents.

This package runs shell commands for an agent as if they were typed into one
long-lived shell, refuses dangerous commands before they run, and resolves
shell-style expressions in configuration values.

Main entry points:
- Shell: persistent shell with block policy and cancellation
- PersistentShells: one shared shell per working directory
- ShellVariableResolver: `$VAR`, `${VAR}` and `$(command)` in config values
- agent-shell CLI: run, resolve and classify commands from a terminal

Security model: the block policy is a predicate over each command's argv,
evaluated before execution. It is not an OS sandbox.
"""
from __future__ import annotations

from .env import Env, MapEnv, OsEnv
from .resolve import (
    EnvironmentVariableResolver,
    ShellVariableResolver,
    VariableResolutionError,
    VariableResolver,
)
from .shell import (
    BlockFunc,
    PersistentShells,
    Shell,
    ShellBlockedError,
    ShellError,
    ShellExitError,
    ShellInterruptedError,
    ShellParseError,
    ShellResult,
    ShellStartError,
    ShellType,
    arguments_blocker,
    classify_command,
    commands_blocker,
    default_block_funcs,
    exit_code,
    is_interrupt,
)

__all__ = [
    # Environment
    "Env",
    "MapEnv",
    "OsEnv",
    # Resolution
    "EnvironmentVariableResolver",
    "ShellVariableResolver",
    "VariableResolutionError",
    "VariableResolver",
    # Shell
    "BlockFunc",
    "PersistentShells",
    "Shell",
    "ShellResult",
    "ShellType",
    "arguments_blocker",
    "classify_command",
    "commands_blocker",
    "default_block_funcs",
    "exit_code",
    "is_interrupt",
    # Errors
    "ShellBlockedError",
    "ShellError",
    "ShellExitError",
    "ShellInterruptedError",
    "ShellParseError",
    "ShellStartError",
    # Version
    "__version__",
]

__version__ = "0.1.0"
