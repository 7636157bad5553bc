"""Spawn a child process and collect its output.

The child gets its own session (or process group on Windows) so that a
cancellation can take down everything it started, not just the direct child.
Every spawned child is reaped before ``run_process`` returns.
"""
from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .errors import ShellStartError

logger = logging.getLogger(__name__)

# How often a running child is checked for cancellation (seconds)
POLL_INTERVAL = 0.05

CANCELLED = "cancelled"
DEADLINE_EXCEEDED = "deadline exceeded"


@dataclass
class ProcessOutcome:
    """Captured output of a finished (or killed) child process."""

    stdout: str
    stderr: str
    returncode: int
    interrupted: Optional[str] = None


def env_list_to_dict(env: Sequence[str]) -> Dict[str, str]:
    """Convert ``KEY=VALUE`` entries to a mapping; later entries win."""
    result: Dict[str, str] = {}
    for entry in env:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            continue
        result[key] = value
    return result


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def _spawn_kwargs() -> dict:
    if sys.platform.startswith("win"):
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def _kill(proc: subprocess.Popen) -> None:
    """Kill the child and everything in its process group."""
    if proc.poll() is not None:
        return
    if sys.platform.startswith("win"):
        proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        proc.kill()


def _deadline_reason(
    deadline: Optional[float],
    cancel: Optional[threading.Event],
) -> Optional[str]:
    if cancel is not None and cancel.is_set():
        return CANCELLED
    if deadline is not None and time.monotonic() >= deadline:
        return DEADLINE_EXCEEDED
    return None


def run_process(
    argv: List[str],
    *,
    cwd: Optional[str] = None,
    env: Optional[Sequence[str]] = None,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> ProcessOutcome:
    """Run ``argv`` to completion, cancellation or deadline.

    Args:
        argv: Program and arguments
        cwd: Working directory for the child
        env: ``KEY=VALUE`` entries (defaults to the current environment)
        timeout: Seconds before the child is killed
        cancel: Event that kills the child when set

    Returns:
        ProcessOutcome; ``interrupted`` is set when the child was killed
        because of ``cancel`` or ``timeout``.

    Raises:
        ShellStartError: If the program cannot be started
    """
    deadline = time.monotonic() + timeout if timeout is not None else None

    reason = _deadline_reason(deadline, cancel)
    if reason is not None:
        return ProcessOutcome(stdout="", stderr="", returncode=-1, interrupted=reason)

    try:
        proc = subprocess.Popen(
            argv,
            cwd=cwd,
            env=env_list_to_dict(env) if env is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            **_spawn_kwargs(),
        )
    except FileNotFoundError as e:
        raise ShellStartError(f"{argv[0]}: command not found", exit_code=127) from e
    except PermissionError as e:
        raise ShellStartError(f"{argv[0]}: permission denied", exit_code=126) from e
    except OSError as e:
        raise ShellStartError(f"could not start {argv[0]}: {e}") from e

    try:
        while True:
            reason = _deadline_reason(deadline, cancel)
            if reason is not None:
                logger.debug(f"Killing process {proc.pid}: {reason}")
                _kill(proc)
                out, err = proc.communicate()
                return ProcessOutcome(
                    stdout=_decode(out),
                    stderr=_decode(err),
                    returncode=proc.returncode,
                    interrupted=reason,
                )

            wait = POLL_INTERVAL
            if deadline is not None:
                wait = max(0.0, min(wait, deadline - time.monotonic()))
            try:
                out, err = proc.communicate(timeout=wait)
            except subprocess.TimeoutExpired:
                continue
            return ProcessOutcome(
                stdout=_decode(out),
                stderr=_decode(err),
                returncode=proc.returncode,
            )
    except BaseException:
        # KeyboardInterrupt and friends: never leave an orphan behind
        _kill(proc)
        proc.wait()
        raise


__all__ = [
    "CANCELLED",
    "DEADLINE_EXCEEDED",
    "ProcessOutcome",
    "env_list_to_dict",
    "run_process",
]
