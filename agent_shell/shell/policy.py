"""Block policy: predicates over the argv a command is about to execute.

A block function receives the argv (program name plus arguments, quotes
removed, variables expanded) and returns True to veto execution. Shells
evaluate their predicates in registration order and stop at the first match.
No predicates means nothing is blocked.
"""
from __future__ import annotations

import sys
from typing import Callable, Iterable, List, Sequence

BlockFunc = Callable[[Sequence[str]], bool]

# Commands an agent must never run directly
BANNED_COMMANDS: tuple[str, ...] = (
    # Network/download tools
    "alias",
    "aria2c",
    "axel",
    "chrome",
    "curl",
    "curlie",
    "firefox",
    "http-prompt",
    "httpie",
    "links",
    "lynx",
    "nc",
    "safari",
    "scp",
    "ssh",
    "telnet",
    "w3m",
    "wget",
    "xh",
    # System administration
    "doas",
    "su",
    "sudo",
    # Package managers
    "apk",
    "apt",
    "apt-cache",
    "apt-get",
    "dnf",
    "dpkg",
    "emerge",
    "home-manager",
    "makepkg",
    "opkg",
    "pacman",
    "paru",
    "pkg",
    "pkg_add",
    "pkg_delete",
    "portage",
    "rpm",
    "yay",
    "yum",
    "zypper",
    # System modification
    "at",
    "batch",
    "chkconfig",
    "crontab",
    "fdisk",
    "mkfs",
    "mount",
    "parted",
    "service",
    "systemctl",
    "umount",
    # Network configuration
    "firewall-cmd",
    "ifconfig",
    "ip",
    "iptables",
    "netstat",
    "pfctl",
    "route",
    "ufw",
)

# Argument prefixes that install software outside the project
BANNED_ARGUMENTS: tuple[tuple[str, ...], ...] = (
    # System package managers
    ("apk", "add"),
    ("apt", "install"),
    ("apt-get", "install"),
    ("dnf", "install"),
    ("emerge",),
    ("pacman", "-S"),
    ("pkg", "install"),
    ("yum", "install"),
    ("zypper", "install"),
    # Language-specific package managers
    ("brew", "install"),
    ("cargo", "install"),
    ("gem", "install"),
    ("go", "install"),
    ("npm", "install", "-g"),
    ("npm", "install", "--global"),
    ("pip", "install", "--user"),
    ("pip3", "install", "--user"),
    ("pnpm", "add", "-g"),
    ("pnpm", "add", "--global"),
    ("yarn", "global", "add"),
)

# Read-only commands that never need user approval
SAFE_READ_ONLY_COMMANDS: tuple[str, ...] = (
    # Bash builtins and core utils
    "cal",
    "date",
    "df",
    "du",
    "echo",
    "env",
    "free",
    "groups",
    "hostname",
    "id",
    "kill",
    "killall",
    "ls",
    "nice",
    "nohup",
    "printenv",
    "ps",
    "pwd",
    "set",
    "time",
    "timeout",
    "top",
    "type",
    "uname",
    "unset",
    "uptime",
    "whatis",
    "whereis",
    "which",
    "whoami",
    # Git
    "git blame",
    "git branch",
    "git config --get",
    "git config --list",
    "git describe",
    "git diff",
    "git grep",
    "git log",
    "git ls-files",
    "git ls-remote",
    "git remote",
    "git rev-parse",
    "git shortlog",
    "git show",
    "git status",
    "git tag",
    # Go
    "go build",
    "go clean",
    "go doc",
    "go env",
    "go fmt",
    "go help",
    "go install",
    "go list",
    "go mod",
    "go run",
    "go test",
    "go version",
    "go vet",
)

WINDOWS_SAFE_READ_ONLY_COMMANDS: tuple[str, ...] = (
    "ipconfig",
    "nslookup",
    "ping",
    "systeminfo",
    "tasklist",
    "where",
)


def commands_blocker(banned_commands: Iterable[str]) -> BlockFunc:
    """Block any argv whose program name is in ``banned_commands``."""
    banned = frozenset(banned_commands)

    def block(args: Sequence[str]) -> bool:
        if not args:
            return False
        return args[0] in banned

    return block


def arguments_blocker(blocked_sub_commands: Iterable[Sequence[str]]) -> BlockFunc:
    """Block any argv starting with one of ``blocked_sub_commands``.

    ``[["npm", "install", "-g"]]`` blocks ``npm install -g typescript`` but
    allows ``npm install typescript``.
    """
    prefixes = [list(prefix) for prefix in blocked_sub_commands if prefix]

    def block(args: Sequence[str]) -> bool:
        args = list(args)
        for prefix in prefixes:
            if args[:len(prefix)] == prefix:
                return True
        return False

    return block


def default_block_funcs() -> List[BlockFunc]:
    """The standard policy for agent-issued commands."""
    return [
        commands_blocker(BANNED_COMMANDS),
        arguments_blocker(BANNED_ARGUMENTS),
    ]


def first_blocked(args: Sequence[str], block_funcs: Sequence[BlockFunc]) -> bool:
    """Evaluate predicates in order; True at the first match."""
    if not args:
        return False
    return any(block(args) for block in block_funcs)


def is_safe_read_only(command: str, platform: str = sys.platform) -> bool:
    """Check whether ``command`` starts with a known read-only command.

    The prefix must be followed by the end of the command, a space or a dash,
    so ``ls`` matches ``ls -la`` but not ``lsof``.
    """
    safe = SAFE_READ_ONLY_COMMANDS
    if platform.startswith("win"):
        safe = safe + WINDOWS_SAFE_READ_ONLY_COMMANDS

    lowered = command.strip().lower()
    for prefix in safe:
        if not lowered.startswith(prefix):
            continue
        if len(lowered) == len(prefix) or lowered[len(prefix)] in (" ", "-"):
            return True
    return False


__all__ = [
    "BANNED_ARGUMENTS",
    "BANNED_COMMANDS",
    "BlockFunc",
    "SAFE_READ_ONLY_COMMANDS",
    "WINDOWS_SAFE_READ_ONLY_COMMANDS",
    "arguments_blocker",
    "commands_blocker",
    "default_block_funcs",
    "first_blocked",
    "is_safe_read_only",
]
