"""Native Windows shells (cmd.exe and PowerShell).

Each command runs in a fresh native shell, so the persisted working directory
is re-entered at the start of every invocation. ``cd`` itself never spawns a
process: the new directory is computed in-process with Windows path rules and
committed only if it exists, matching the POSIX ``cd`` builtin.
"""
from __future__ import annotations

import logging
import ntpath
import os
import shlex
from dataclasses import dataclass
from typing import Callable, List, Optional

from .errors import ShellError, ShellParseError
from .types import ShellType

logger = logging.getLogger(__name__)


@dataclass
class ChangeDirectory:
    """Result of an in-process ``cd``."""

    cwd: str
    stderr: str = ""
    error: Optional[ShellError] = None


def is_cd_command(command: str) -> bool:
    stripped = command.strip()
    return stripped == "cd" or stripped.startswith("cd ")


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def change_directory(
    cwd: str,
    command: str,
    isdir: Optional[Callable[[str], bool]] = None,
) -> ChangeDirectory:
    """Apply ``cd <target>`` to ``cwd`` using Windows path semantics.

    Supports ``.``, ``..``, relative, rooted (``\\dir``) and drive-letter
    targets. ``..`` never climbs above the drive root.
    """
    isdir = isdir or os.path.isdir
    target = command.strip()[2:].strip()
    if not target:
        return ChangeDirectory(
            cwd=cwd,
            stderr="cd: missing directory argument",
            error=ShellError("missing directory argument"),
        )

    # cmd.exe's ``cd /d X`` is plain ``cd X`` here
    if target.lower().startswith("/d "):
        target = target[3:].strip()
    target = _strip_quotes(target)

    new_cwd = ntpath.normpath(ntpath.join(cwd, target))
    if not isdir(new_cwd):
        return ChangeDirectory(
            cwd=cwd,
            stderr=f"cd: {target}: No such file or directory",
            error=ShellError(f"directory does not exist: {new_cwd}"),
        )
    logger.debug(f"Changed directory to {new_cwd}")
    return ChangeDirectory(cwd=new_cwd)


def wrap_native_command(shell_type: ShellType, cwd: str, command: str) -> List[str]:
    """Build the argv that enters ``cwd`` and runs ``command`` in one shell."""
    if shell_type is ShellType.CMD:
        return ["cmd", "/C", f'cd /d "{cwd}" && {command}']
    if shell_type is ShellType.POWERSHELL:
        quoted = cwd.replace("'", "''")
        return ["powershell", "-NoProfile", "-Command", f"Set-Location '{quoted}'; {command}"]
    raise ValueError(f"unsupported Windows shell: {shell_type.value}")


def native_argvs(command: str) -> List[List[str]]:
    """Tokenize a native command line into one argv per chained command.

    ``&``, ``&&``, ``|``, ``||`` and ``;`` separate commands.

    Raises:
        ShellParseError: If the command cannot be tokenized
    """
    lexer = shlex.shlex(command, posix=False, punctuation_chars="&|;")
    lexer.whitespace_split = True
    try:
        tokens = list(lexer)
    except ValueError as e:
        raise ShellParseError(f"could not parse command: {e}") from e

    argvs: List[List[str]] = [[]]
    for token in tokens:
        if token and set(token) <= set("&|;"):
            argvs.append([])
            continue
        argvs[-1].append(_strip_quotes(token))
    return [argv for argv in argvs if argv]


__all__ = [
    "ChangeDirectory",
    "change_directory",
    "is_cd_command",
    "native_argvs",
    "wrap_native_command",
]
