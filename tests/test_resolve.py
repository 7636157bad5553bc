"""Tests for configuration value resolution."""
from __future__ import annotations

import pytest

from agent_shell.env import MapEnv, OsEnv
from agent_shell.resolve import (
    EnvironmentVariableResolver,
    ShellVariableResolver,
    VariableResolutionError,
    find_closing_paren,
)
from agent_shell.shell import ShellExitError, ShellResult


class FakeShell:
    """Answers a fixed set of commands."""

    def __init__(self, outputs=None):
        self.outputs = outputs or {}
        self.calls = []

    def exec(self, command, *, timeout=None, cancel=None):
        self.calls.append((command, timeout))
        if command not in self.outputs:
            return ShellResult(stderr=f"{command}: not found\n", error=ShellExitError(127))
        return ShellResult(stdout=self.outputs[command])


ENV = MapEnv({
    "HOME": "/home/user",
    "TOKEN": "secret",
    "USER": "testuser",
    "HOST": "localhost",
    "EMPTY": "",
})


def resolver(outputs=None) -> ShellVariableResolver:
    return ShellVariableResolver(ENV, shell=FakeShell(outputs))


class TestShellVariableResolver:
    def test_plain_value(self):
        assert resolver().resolve_value("sk-literal") == "sk-literal"
        assert resolver().resolve_value("") == ""

    def test_variable(self):
        assert resolver().resolve_value("$HOME") == "/home/user"

    def test_braced_variable(self):
        assert resolver().resolve_value("Bearer ${TOKEN}") == "Bearer secret"

    def test_variable_mid_string(self):
        assert resolver().resolve_value("path=$HOME/bin") == "path=/home/user/bin"

    def test_command_output_is_trimmed(self):
        assert resolver({"echo hello": "hello\n"}).resolve_value("$(echo hello)") == "hello"

    def test_nested_command(self):
        outputs = {"echo $(echo nested)": "  nested\n"}
        assert resolver(outputs).resolve_value("$(echo $(echo nested))") == "nested"

    def test_parentheses_inside_command(self):
        outputs = {"printf '%s' (x)": "(x)"}
        assert resolver(outputs).resolve_value("v=$(printf '%s' (x))") == "v=(x)"

    def test_mixed(self):
        outputs = {"date +%Y": "2024\n"}
        value = resolver(outputs).resolve_value("$USER-$(date +%Y)-$HOST")
        assert value == "testuser-2024-localhost"

    def test_replacement_is_not_rescanned(self):
        outputs = {"printf x": "$HOME"}
        assert resolver(outputs).resolve_value("$(printf x)") == "$HOME"

    def test_command_gets_timeout(self):
        shell = FakeShell({"true": ""})
        ShellVariableResolver(ENV, shell=shell, timeout=7).resolve_value("a$(true)b")
        assert shell.calls == [("true", 7)]

    @pytest.mark.parametrize("value, message", [
        ("$", "invalid value format"),
        ("cost: 5$", "trailing"),
        ("$1", "invalid character"),
        ("$-x", "invalid character"),
        ("$(echo", "unmatched '\\$\\('"),
        ("${TOKEN", "unmatched '\\$\\{'"),
        ("$MISSING", "environment variable 'MISSING' not set"),
        ("${EMPTY}", "environment variable 'EMPTY' not set"),
    ])
    def test_errors(self, value, message):
        with pytest.raises(VariableResolutionError, match=message):
            resolver().resolve_value(value)

    def test_failing_command(self):
        with pytest.raises(VariableResolutionError, match="command execution failed for 'bogus'") as exc_info:
            resolver().resolve_value("$(bogus)")
        assert "not found" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, ShellExitError)


@pytest.mark.posix
def test_real_shell_substitution(monkeypatch):
    monkeypatch.setenv("AGENT_SHELL_TEST_VALUE", "from-env")
    resolved = ShellVariableResolver(OsEnv()).resolve_value(
        "$AGENT_SHELL_TEST_VALUE:$(echo from-shell)"
    )
    assert resolved == "from-env:from-shell"


class TestEnvironmentVariableResolver:
    def test_literal(self):
        assert EnvironmentVariableResolver(ENV).resolve_value("plain") == "plain"

    def test_prefix_variable(self):
        assert EnvironmentVariableResolver(ENV).resolve_value("$TOKEN") == "secret"

    def test_no_mid_string_or_commands(self):
        legacy = EnvironmentVariableResolver(ENV)
        assert legacy.resolve_value("Bearer $TOKEN") == "Bearer $TOKEN"
        with pytest.raises(VariableResolutionError, match="not set"):
            legacy.resolve_value("$(echo hi)")

    def test_unset(self):
        with pytest.raises(VariableResolutionError, match="environment variable 'NOPE' not set"):
            EnvironmentVariableResolver(ENV).resolve_value("$NOPE")


def test_find_closing_paren():
    assert find_closing_paren("$(a(b)c)", 2) == 7
    assert find_closing_paren("$(abc", 2) == -1


class TestEnv:
    def test_map_env(self):
        env = MapEnv({"A": "1"})
        assert env.get("A") == "1"
        assert env.get("B") == ""
        assert env.environ() == ["A=1"]
        assert MapEnv().environ() is None

    def test_os_env(self, monkeypatch):
        monkeypatch.setenv("AGENT_SHELL_TEST_VALUE", "x")
        assert OsEnv().get("AGENT_SHELL_TEST_VALUE") == "x"
        assert "AGENT_SHELL_TEST_VALUE=x" in OsEnv().environ()
