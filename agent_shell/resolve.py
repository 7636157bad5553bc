"""Resolve shell-style expressions in configuration values.

Configuration values such as API keys, base URLs and MCP headers may
reference the environment or a command instead of holding a secret::

    "sk-literal"                 -> "sk-literal"
    "$OPENAI_API_KEY"            -> value of OPENAI_API_KEY
    "Bearer ${TOKEN}"            -> "Bearer " + value of TOKEN
    "$(pass show openai)"        -> trimmed stdout of the command
    "$USER-$(date +%Y)-$HOST"    -> all three, left to right

``ShellVariableResolver`` implements the full grammar and runs substituted
commands through a ``Shell``. ``EnvironmentVariableResolver`` is the legacy
prefix-only mode: it never executes anything.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol

from .env import Env
from .shell import Shell, ShellResult

logger = logging.getLogger(__name__)

# Timeout for command substitution (seconds). Generous because commands may
# call password managers or cloud CLIs.
DEFAULT_COMMAND_TIMEOUT = 5 * 60


class VariableResolutionError(ValueError):
    """Raised when a value cannot be resolved."""
    pass


class VariableResolver(Protocol):
    def resolve_value(self, value: str) -> str:
        ...


class CommandRunner(Protocol):
    def exec(
        self,
        command: str,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ShellResult:
        ...


def _is_name_start(char: str) -> bool:
    return char == "_" or ("a" <= char <= "z") or ("A" <= char <= "Z")


def _is_name_char(char: str) -> bool:
    return _is_name_start(char) or ("0" <= char <= "9")


def find_closing_paren(value: str, start: int) -> int:
    """Return the index of the ``)`` closing a ``$(`` whose body starts at ``start``.

    Returns -1 if the parenthesis is never closed.
    """
    depth = 1
    for i in range(start, len(value)):
        char = value[i]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


class ShellVariableResolver:
    """Resolve ``$(cmd)``, ``${NAME}`` and ``$NAME`` anywhere in a value.

    Args:
        env: Variable lookup
        shell: Runs substituted commands (defaults to a private Shell built
            from ``env``)
        timeout: Seconds allowed for each substituted command
    """

    def __init__(
        self,
        env: Env,
        shell: Optional[CommandRunner] = None,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ):
        self._env = env
        self._shell = shell if shell is not None else Shell(env=env.environ())
        self._timeout = timeout

    def resolve_value(self, value: str) -> str:
        """Return ``value`` with every substitution applied.

        Raises:
            VariableResolutionError: On unmatched delimiters, invalid variable
                names, unset variables or failing commands
        """
        if value == "$":
            raise VariableResolutionError("invalid value format: '$'")

        result = value
        pos = 0
        while True:
            start = result.find("$", pos)
            if start == -1:
                return result

            if start + 1 >= len(result):
                raise VariableResolutionError(
                    f"invalid value format: trailing '$' in {value!r}"
                )

            marker = result[start + 1]
            if marker == "(":
                end = find_closing_paren(result, start + 2)
                if end == -1:
                    raise VariableResolutionError(
                        f"unmatched '$(' in value: {value!r}"
                    )
                replacement = self._run(result[start + 2:end])
            elif marker == "{":
                end = result.find("}", start + 2)
                if end == -1:
                    raise VariableResolutionError(
                        f"unmatched '${{' in value: {value!r}"
                    )
                replacement = self._lookup(result[start + 2:end])
            elif _is_name_start(marker):
                end = start + 1
                while end + 1 < len(result) and _is_name_char(result[end + 1]):
                    end += 1
                replacement = self._lookup(result[start + 1:end + 1])
            else:
                raise VariableResolutionError(
                    f"invalid character {marker!r} after '$' in value: {value!r}"
                )

            result = result[:start] + replacement + result[end + 1:]
            pos = start + len(replacement)

    def _lookup(self, name: str) -> str:
        resolved = self._env.get(name)
        if not resolved:
            raise VariableResolutionError(f"environment variable {name!r} not set")
        logger.debug(f"Resolved environment variable {name}")
        return resolved

    def _run(self, command: str) -> str:
        logger.debug(f"Resolving value from command: {command!r}")
        result = self._shell.exec(command, timeout=self._timeout)
        if result.error is not None:
            detail = result.stderr.strip() or str(result.error)
            raise VariableResolutionError(
                f"command execution failed for {command!r}: {detail}"
            ) from result.error
        return result.stdout.strip()


class EnvironmentVariableResolver:
    """Legacy prefix-only resolver.

    ``"$NAME"`` is looked up verbatim; anything not starting with ``$`` is
    returned unchanged. Commands are never executed and nothing is scanned
    mid-string.
    """

    def __init__(self, env: Env):
        self._env = env

    def resolve_value(self, value: str) -> str:
        if not value.startswith("$"):
            return value

        name = value[1:]
        resolved = self._env.get(name)
        if not resolved:
            raise VariableResolutionError(f"environment variable {name!r} not set")
        return resolved


__all__ = [
    "CommandRunner",
    "DEFAULT_COMMAND_TIMEOUT",
    "EnvironmentVariableResolver",
    "ShellVariableResolver",
    "VariableResolutionError",
    "VariableResolver",
    "find_closing_paren",
]
