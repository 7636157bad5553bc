"""Tests for the per-directory shell registry."""
from __future__ import annotations

import os

from agent_shell.shell import PersistentShells, ShellBlockedError, commands_blocker


def test_same_directory_shares_a_shell(workdir):
    shells = PersistentShells()
    first = shells.get(str(workdir))
    assert shells.get(str(workdir)) is first
    assert shells.get(str(workdir / "sub" / "..")) is first
    assert len(shells) == 1


def test_different_directories_get_different_shells(workdir):
    shells = PersistentShells()
    assert shells.get(str(workdir)) is not shells.get(str(workdir / "sub"))
    assert len(shells) == 2


def test_relative_directory_is_made_absolute(workdir, monkeypatch):
    monkeypatch.chdir(workdir)
    shell = PersistentShells().get("sub")
    assert shell.get_working_dir() == os.path.join(str(workdir), "sub")


def test_env_is_passed_to_new_shells(workdir):
    shells = PersistentShells(env=["A=1"])
    assert shells.get(str(workdir)).get_env() == ["A=1"]


def test_policy_change_reaches_existing_shells(workdir):
    shells = PersistentShells()
    shell = shells.get(str(workdir))

    shells.set_block_funcs([commands_blocker(["curl"])])

    assert isinstance(shell.exec("curl x").error, ShellBlockedError)
    assert isinstance(shells.get(str(workdir / "sub")).exec("curl x").error, ShellBlockedError)
