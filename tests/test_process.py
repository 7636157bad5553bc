"""Tests for spawning and interrupting child processes."""
from __future__ import annotations

import subprocess
import threading
import time

import pytest

from agent_shell.shell import ShellStartError
from agent_shell.shell.process import (
    CANCELLED,
    DEADLINE_EXCEEDED,
    env_list_to_dict,
    run_process,
)


def test_env_list_to_dict():
    env = env_list_to_dict(["A=1", "B=x=y", "broken", "=nokey", "A=2"])
    assert env == {"A": "2", "B": "x=y"}


def test_pre_cancelled_never_spawns(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("process must not be started")

    monkeypatch.setattr(subprocess, "Popen", fail)
    cancel = threading.Event()
    cancel.set()

    outcome = run_process(["sleep", "10"], cancel=cancel)

    assert outcome.interrupted == CANCELLED
    assert outcome.stdout == ""


def test_missing_program():
    with pytest.raises(ShellStartError) as exc_info:
        run_process(["agent-shell-no-such-program"])
    assert exc_info.value.exit_code == 127


@pytest.mark.posix
class TestRunProcess:
    def test_captures_output_and_status(self, tmp_path):
        outcome = run_process(
            ["bash", "-c", "echo out; echo err >&2; exit 4"],
            cwd=str(tmp_path),
        )
        assert outcome.stdout == "out\n"
        assert outcome.stderr == "err\n"
        assert outcome.returncode == 4
        assert outcome.interrupted is None

    def test_env_and_cwd(self, tmp_path):
        outcome = run_process(
            ["bash", "-c", 'echo "$GREETING"; pwd'],
            cwd=str(tmp_path),
            env=["GREETING=hi", "PATH=/usr/bin:/bin"],
        )
        assert outcome.stdout == f"hi\n{tmp_path}\n"

    def test_deadline_kills_process_group(self):
        start = time.monotonic()
        outcome = run_process(["bash", "-c", "sleep 10 & sleep 10; wait"], timeout=0.2)
        assert outcome.interrupted == DEADLINE_EXCEEDED
        assert time.monotonic() - start < 5

    def test_cancel_while_running(self):
        cancel = threading.Event()
        timer = threading.Timer(0.2, cancel.set)
        timer.start()
        try:
            start = time.monotonic()
            outcome = run_process(["sleep", "10"], cancel=cancel)
        finally:
            timer.cancel()
        assert outcome.interrupted == CANCELLED
        assert time.monotonic() - start < 5
