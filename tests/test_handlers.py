"""Tests for the exec handler chain."""
from __future__ import annotations

import pytest

from agent_shell.shell import (
    ExecOutcome,
    ExecRequest,
    ShellBlockedError,
    block_handler,
    commands_blocker,
    compose,
)


def request(*argvs) -> ExecRequest:
    return ExecRequest(script="", argvs=[list(argv) for argv in argvs], cwd="/", env=[])


def terminal(request: ExecRequest) -> ExecOutcome:
    return ExecOutcome(stdout="ran", stderr="", returncode=0)


def test_compose_runs_first_middleware_first():
    order = []

    def tag(name):
        def middleware(next_handler):
            def handle(request):
                order.append(name)
                return next_handler(request)
            return handle
        return middleware

    handler = compose([tag("outer"), tag("inner")], terminal)
    assert handler(request(["ls"])).stdout == "ran"
    assert order == ["outer", "inner"]


def test_compose_without_middlewares():
    assert compose([], terminal) is terminal


def test_block_handler_delegates_when_allowed():
    handler = compose([block_handler([commands_blocker(["curl"])])], terminal)
    assert handler(request(["ls"], ["echo", "curl"])).stdout == "ran"


def test_block_handler_refuses_any_matching_argv():
    called = []

    def record(request):
        called.append(request)
        return terminal(request)

    handler = compose([block_handler([commands_blocker(["curl"])])], record)
    with pytest.raises(ShellBlockedError) as exc_info:
        handler(request(["ls"], ["curl", "x"]))

    assert exc_info.value.argv == ["curl", "x"]
    assert called == []


def test_empty_argvs_are_skipped():
    handler = compose([block_handler([lambda argv: True])], terminal)
    assert handler(request([])).stdout == "ran"
