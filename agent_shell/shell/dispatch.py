"""Choose the interpreter for a command.

On Windows the embedded POSIX path cannot run genuinely native tooling, while
forcing everything through cmd.exe would break the bash-style scripts agents
write. Native utilities go to cmd.exe, PowerShell-looking text goes to
PowerShell, everything else stays on the POSIX path.
"""
from __future__ import annotations

import sys

from .types import ShellType

WINDOWS_NATIVE_COMMANDS = frozenset([
    "dir",
    "type",
    "copy",
    "move",
    "del",
    "md",
    "mkdir",
    "rd",
    "rmdir",
    "cls",
    "where",
    "tasklist",
    "taskkill",
    "net",
    "sc",
    "reg",
    "wmic",
])

POWERSHELL_MARKERS = (
    "Get-",
    "Set-",
    "New-",
    "$_",
    "| Where-Object",
    "| ForEach-Object",
)


def is_windows(platform: str = sys.platform) -> bool:
    return platform.startswith("win")


def classify_command(command: str, platform: str = sys.platform) -> ShellType:
    """Return the shell type ``command`` should run under on ``platform``."""
    if not is_windows(platform):
        return ShellType.POSIX

    parts = command.split()
    if not parts:
        return ShellType.POSIX

    if parts[0].lower() in WINDOWS_NATIVE_COMMANDS:
        return ShellType.CMD

    if any(marker in command for marker in POWERSHELL_MARKERS):
        return ShellType.POWERSHELL

    return ShellType.POSIX


__all__ = [
    "POWERSHELL_MARKERS",
    "WINDOWS_NATIVE_COMMANDS",
    "classify_command",
    "is_windows",
]
