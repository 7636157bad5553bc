"""Exec handler chain.

A request flows through an ordered list of middlewares wrapped around the
handler that really executes it::

    block_handler(funcs) -> run (POSIX interpreter or native shell)

Each middleware is a ``Callable[[ExecHandler], ExecHandler]``; it may inspect
the request and either short-circuit by raising or delegate to ``next``.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .errors import ShellBlockedError
from .policy import BlockFunc, first_blocked

logger = logging.getLogger(__name__)


@dataclass
class ExecRequest:
    """Everything a handler needs to run one script."""

    script: str
    argvs: List[List[str]]
    cwd: str
    env: List[str]
    timeout: Optional[float] = None
    cancel: Optional[threading.Event] = None


@dataclass
class ExecOutcome:
    """What a handler produced.

    ``cwd``/``env`` are the interpreter's final state, or None when the
    shell must keep its pre-call state.
    """

    stdout: str
    stderr: str
    returncode: int
    interrupted: Optional[str] = None
    cwd: Optional[str] = None
    env: Optional[List[str]] = field(default=None)


ExecHandler = Callable[[ExecRequest], ExecOutcome]
ExecMiddleware = Callable[[ExecHandler], ExecHandler]


def block_handler(block_funcs: Sequence[BlockFunc]) -> ExecMiddleware:
    """Refuse the request if any argv matches a block function."""
    funcs = list(block_funcs)

    def middleware(next_handler: ExecHandler) -> ExecHandler:
        def handle(request: ExecRequest) -> ExecOutcome:
            for argv in request.argvs:
                if first_blocked(argv, funcs):
                    logger.info(f"Blocked command: {argv}")
                    raise ShellBlockedError(argv)
            return next_handler(request)

        return handle

    return middleware


def compose(middlewares: Sequence[ExecMiddleware], terminal: ExecHandler) -> ExecHandler:
    """Wrap ``terminal`` so the first middleware runs first."""
    handler = terminal
    for middleware in reversed(middlewares):
        handler = middleware(handler)
    return handler


__all__ = [
    "ExecHandler",
    "ExecMiddleware",
    "ExecOutcome",
    "ExecRequest",
    "block_handler",
    "compose",
]
