"""Tests for agent-shell.toml loading."""
from __future__ import annotations

from pathlib import Path

import pytest

from agent_shell.config import AgentShellConfig, ConfigError, ShellSettings, load_config
from agent_shell.env import MapEnv
from agent_shell.resolve import EnvironmentVariableResolver
from agent_shell.shell import first_blocked


def write_config(tmp_path: Path, content: str) -> None:
    (tmp_path / "agent-shell.toml").write_text(content)


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path)
    assert config == AgentShellConfig()
    assert config.path is None
    assert config.shell == ShellSettings()


def test_full_config(tmp_path):
    (tmp_path / "project").mkdir()
    write_config(tmp_path, """
[shell]
working_dir = "project"
default_timeout_ms = 5000
max_timeout_ms = 20000
max_output_length = 1000
use_default_policy = false
banned_commands = ["rm"]
banned_arguments = [["git", "push"]]
resolve_timeout = 2.5

[env]
API_KEY = "$SECRET"

[headers]
Authorization = "Bearer ${TOKEN}"
""")

    config = load_config(tmp_path)

    assert config.path == tmp_path / "agent-shell.toml"
    assert config.shell.working_dir == (tmp_path / "project").resolve()
    assert config.shell.default_timeout_ms == 5000
    assert config.shell.max_timeout_ms == 20000
    assert config.shell.max_output_length == 1000
    assert config.shell.use_default_policy is False
    assert config.shell.banned_commands == ["rm"]
    assert config.shell.banned_arguments == [["git", "push"]]
    assert config.shell.resolve_timeout == 2.5
    assert config.env == {"API_KEY": "$SECRET"}
    assert config.headers == {"Authorization": "Bearer ${TOKEN}"}


class TestBlockFuncs:
    def test_default_policy(self):
        funcs = AgentShellConfig().block_funcs()
        assert first_blocked(["curl", "x"], funcs)
        assert not first_blocked(["ls"], funcs)

    def test_extra_rules_extend_default(self):
        config = AgentShellConfig(shell=ShellSettings(banned_commands=["rm"]))
        funcs = config.block_funcs()
        assert first_blocked(["rm", "-rf", "x"], funcs)
        assert first_blocked(["curl", "x"], funcs)

    def test_default_policy_can_be_disabled(self):
        config = AgentShellConfig(shell=ShellSettings(
            use_default_policy=False,
            banned_arguments=[["git", "push"]],
        ))
        funcs = config.block_funcs()
        assert not first_blocked(["curl", "x"], funcs)
        assert first_blocked(["git", "push", "origin"], funcs)
        assert not first_blocked(["git", "pull"], funcs)


def test_resolved_tables_skip_failures(caplog):
    config = AgentShellConfig(
        env={"GOOD": "$TOKEN", "BAD": "$MISSING", "LITERAL": "x"},
        headers={"Authorization": "$TOKEN"},
    )
    resolver = EnvironmentVariableResolver(MapEnv({"TOKEN": "secret"}))

    with caplog.at_level("WARNING"):
        env = config.resolved_env(resolver)

    assert env == {"GOOD": "secret", "LITERAL": "x"}
    assert "Skipping environment variable 'BAD'" in caplog.text
    assert config.resolved_headers(resolver) == {"Authorization": "secret"}


@pytest.mark.parametrize("content, message", [
    ("[shell\n", "agent-shell.toml"),
    ("[shell]\ndefault_timeout_ms = 0\n", "positive integer"),
    ("[shell]\nmax_output_length = \"big\"\n", "positive integer"),
    ("[shell]\ndefault_timeout_ms = 700000\n", "must not exceed"),
    ("[shell]\nuse_default_policy = \"yes\"\n", "true or false"),
    ("[shell]\nbanned_commands = [1]\n", "list of strings"),
    ("[shell]\nbanned_arguments = [[]]\n", "non-empty string lists"),
    ("[shell]\nresolve_timeout = -1\n", "positive number"),
    ("[env]\nKEY = 1\n", "env.KEY must be a string"),
    ("headers = \"x\"\n", "must be a table"),
])
def test_invalid_config(tmp_path, content, message):
    write_config(tmp_path, content)
    with pytest.raises(ConfigError, match=message):
        load_config(tmp_path)
