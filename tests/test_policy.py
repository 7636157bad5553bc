"""Tests for the block policy and read-only detection."""
from __future__ import annotations

import pytest

from agent_shell.shell.policy import (
    BANNED_ARGUMENTS,
    BANNED_COMMANDS,
    arguments_blocker,
    commands_blocker,
    default_block_funcs,
    first_blocked,
    is_safe_read_only,
)


class TestCommandsBlocker:
    def test_blocks_listed_program(self):
        block = commands_blocker(["curl", "wget"])
        assert block(["curl", "https://example.com"])
        assert block(["wget"])

    def test_allows_other_programs(self):
        block = commands_blocker(["curl"])
        assert not block(["ls", "-la"])
        assert not block(["echo", "curl"])

    def test_empty_argv_is_never_blocked(self):
        assert not commands_blocker(["curl"])([])

    def test_match_is_exact(self):
        block = commands_blocker(["curl"])
        assert not block(["curlie"])
        assert not block(["/usr/bin/curl"])


class TestArgumentsBlocker:
    def test_blocks_matching_prefix(self):
        block = arguments_blocker([["npm", "install", "-g"]])
        assert block(["npm", "install", "-g", "typescript"])

    def test_allows_shorter_or_different_argv(self):
        block = arguments_blocker([["npm", "install", "-g"]])
        assert not block(["npm", "install", "typescript"])
        assert not block(["npm", "install"])
        assert not block(["npm", "-g", "install"])

    def test_single_element_prefix(self):
        block = arguments_blocker([["emerge"]])
        assert block(["emerge", "vim"])
        assert block(["emerge"])

    def test_empty_prefixes_are_ignored(self):
        block = arguments_blocker([[]])
        assert not block(["anything"])


class TestDefaultBlockFuncs:
    @pytest.mark.parametrize("argv", [
        ["curl", "https://example.com"],
        ["sudo", "rm", "-rf", "/"],
        ["apt-get", "update"],
        ["ssh", "host"],
        ["systemctl", "restart", "nginx"],
        ["npm", "install", "--global", "left-pad"],
        ["pip", "install", "--user", "requests"],
        ["brew", "install", "jq"],
        ["yarn", "global", "add", "typescript"],
    ])
    def test_blocked(self, argv):
        assert first_blocked(argv, default_block_funcs())

    @pytest.mark.parametrize("argv", [
        ["ls", "-la"],
        ["git", "status"],
        ["npm", "install"],
        ["pip", "install", "requests"],
        ["go", "test", "./..."],
        ["python", "-m", "pytest"],
    ])
    def test_allowed(self, argv):
        assert not first_blocked(argv, default_block_funcs())

    def test_no_funcs_blocks_nothing(self):
        assert not first_blocked(["curl", "x"], [])

    def test_tables_are_not_empty(self):
        assert "curl" in BANNED_COMMANDS
        assert ("go", "install") in BANNED_ARGUMENTS


class TestIsSafeReadOnly:
    @pytest.mark.parametrize("command", [
        "ls",
        "ls -la",
        "git status",
        "git log --oneline",
        "git config --get user.name",
        "  pwd  ",
        "LS -la",
        "go version",
    ])
    def test_read_only(self, command):
        assert is_safe_read_only(command, "linux")

    @pytest.mark.parametrize("command", [
        "lsof",
        "rm -rf build",
        "git push",
        "git config user.name bob",
        "gitstatus",
        "",
    ])
    def test_not_read_only(self, command):
        assert not is_safe_read_only(command, "linux")

    def test_dash_after_prefix_counts(self):
        assert is_safe_read_only("git diff-tree HEAD", "linux")

    def test_windows_extras_only_on_windows(self):
        assert is_safe_read_only("ipconfig /all", "win32")
        assert not is_safe_read_only("ipconfig /all", "linux")
