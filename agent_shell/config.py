"""Configuration loading for agent-shell.

Reads an optional TOML config file from a directory to control the block
policy, tool timeouts and output limits, plus ``[env]`` and ``[headers]``
tables whose values may be shell-style expressions (see ``resolve``).
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .resolve import VariableResolutionError, VariableResolver
from .shell.policy import BlockFunc, arguments_blocker, commands_blocker, default_block_funcs

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("agent-shell.toml",)


class ConfigError(ValueError):
    """Raised when a config file holds an invalid value."""
    pass


@dataclass
class ShellSettings:
    working_dir: Optional[Path] = None
    default_timeout_ms: int = 60_000
    max_timeout_ms: int = 600_000
    max_output_length: int = 30_000
    use_default_policy: bool = True
    banned_commands: List[str] = field(default_factory=list)
    banned_arguments: List[List[str]] = field(default_factory=list)
    resolve_timeout: float = 300.0


@dataclass
class AgentShellConfig:
    shell: ShellSettings = field(default_factory=ShellSettings)
    env: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    path: Optional[Path] = None

    def block_funcs(self) -> List[BlockFunc]:
        """Build the block policy described by this config."""
        funcs = default_block_funcs() if self.shell.use_default_policy else []
        if self.shell.banned_commands:
            funcs.append(commands_blocker(self.shell.banned_commands))
        if self.shell.banned_arguments:
            funcs.append(arguments_blocker(self.shell.banned_arguments))
        return funcs

    def resolved_env(self, resolver: VariableResolver) -> Dict[str, str]:
        """Resolve ``[env]`` values, skipping the ones that fail."""
        return _resolve_table(self.env, resolver, "environment variable")

    def resolved_headers(self, resolver: VariableResolver) -> Dict[str, str]:
        """Resolve ``[headers]`` values, skipping the ones that fail."""
        return _resolve_table(self.headers, resolver, "header")


def _resolve_table(table: Dict[str, str], resolver: VariableResolver, kind: str) -> Dict[str, str]:
    resolved = {}
    for key, raw in table.items():
        try:
            resolved[key] = resolver.resolve_value(raw)
        except VariableResolutionError as e:
            logger.warning(f"Skipping {kind} {key!r}: {e}")
    return resolved


def load_config(base_dir: Path) -> AgentShellConfig:
    """Load config from the first matching file in ``base_dir``."""

    for filename in CONFIG_FILENAMES:
        candidate = base_dir / filename
        if not candidate.exists():
            continue
        with candidate.open("rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"{candidate}: {e}") from e
        return AgentShellConfig(
            shell=_parse_shell(data.get("shell", {}), candidate.parent),
            env=_parse_strings(data.get("env", {}), "env"),
            headers=_parse_strings(data.get("headers", {}), "headers"),
            path=candidate,
        )

    return AgentShellConfig()


def _parse_int(raw: dict, key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"shell.{key} must be a positive integer, got {value!r}")
    return value


def _parse_shell(raw: dict, base_dir: Path) -> ShellSettings:
    defaults = ShellSettings()

    working_dir = raw.get("working_dir")
    if working_dir is not None:
        working_dir = (base_dir / str(working_dir)).resolve()

    use_default_policy = raw.get("use_default_policy", True)
    if not isinstance(use_default_policy, bool):
        raise ConfigError("shell.use_default_policy must be true or false")

    banned_commands = raw.get("banned_commands") or []
    if not all(isinstance(item, str) for item in banned_commands):
        raise ConfigError("shell.banned_commands must be a list of strings")

    banned_arguments = raw.get("banned_arguments") or []
    for sequence in banned_arguments:
        if not isinstance(sequence, list) or not sequence or not all(
            isinstance(item, str) for item in sequence
        ):
            raise ConfigError("shell.banned_arguments must be a list of non-empty string lists")

    resolve_timeout = raw.get("resolve_timeout", defaults.resolve_timeout)
    if isinstance(resolve_timeout, bool) or not isinstance(resolve_timeout, (int, float)) or resolve_timeout <= 0:
        raise ConfigError(f"shell.resolve_timeout must be a positive number, got {resolve_timeout!r}")

    settings = ShellSettings(
        working_dir=working_dir,
        default_timeout_ms=_parse_int(raw, "default_timeout_ms", defaults.default_timeout_ms),
        max_timeout_ms=_parse_int(raw, "max_timeout_ms", defaults.max_timeout_ms),
        max_output_length=_parse_int(raw, "max_output_length", defaults.max_output_length),
        use_default_policy=use_default_policy,
        banned_commands=list(banned_commands),
        banned_arguments=[list(sequence) for sequence in banned_arguments],
        resolve_timeout=float(resolve_timeout),
    )
    if settings.default_timeout_ms > settings.max_timeout_ms:
        raise ConfigError("shell.default_timeout_ms must not exceed shell.max_timeout_ms")
    return settings


def _parse_strings(raw: Any, section: str) -> Dict[str, str]:
    if not isinstance(raw, dict):
        raise ConfigError(f"[{section}] must be a table")
    parsed = {}
    for key, value in raw.items():
        if not isinstance(value, str):
            raise ConfigError(f"{section}.{key} must be a string")
        parsed[key] = value
    return parsed


__all__ = [
    "AgentShellConfig",
    "CONFIG_FILENAMES",
    "ConfigError",
    "ShellSettings",
    "load_config",
]
