"""POSIX interpreter adapter.

Runs a script under bash with the shell's persisted environment and working
directory, then reads back the interpreter's final state so the next call
continues where this one stopped:

- ``allexport`` is on while the script runs, so plain assignments persist
  just like exports do
- an EXIT trap dumps the final directory and the exported variable table
  (bash builtins only) into a state file
- if the run was interrupted, or the dump is missing, no state is returned
  and the caller keeps its pre-call state
"""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
from typing import List, Optional, Tuple

from .errors import ShellStartError
from .handlers import ExecOutcome, ExecRequest
from .process import run_process

logger = logging.getLogger(__name__)

WRAPPER_PREFIX = "__agent_shell_"

# Variables bash rewrites on every start; they keep their pre-run values
EPHEMERAL_VARS = ("SHLVL", "_")

WRAPPER_SCRIPT = (
    '__agent_shell_script=$1\n'
    '__agent_shell_state=$2\n'
    'set --\n'
    "trap '__agent_shell_rc=$?; "
    '{ builtin pwd; '
    'for __agent_shell_name in $(builtin compgen -e); do '
    'builtin printf "%s=%s\\0" "$__agent_shell_name" "${!__agent_shell_name}"; '
    'done; } > "$__agent_shell_state" 2>/dev/null; '
    "exit $__agent_shell_rc' EXIT\n"
    'set -a\n'
    '. "$__agent_shell_script"\n'
)


def find_bash() -> Optional[str]:
    """Locate a bash binary on PATH."""
    return shutil.which("bash")


def parse_state(data: str, previous_env: List[str]) -> Optional[Tuple[str, List[str]]]:
    """Parse the EXIT trap dump into ``(cwd, env)``.

    Returns None when the dump is empty or malformed.
    """
    cwd, sep, rest = data.partition("\n")
    if not sep or not cwd:
        return None

    env = []
    for entry in rest.split("\0"):
        name, eq, _ = entry.partition("=")
        if not eq or not name:
            continue
        if name.startswith(WRAPPER_PREFIX) or name in EPHEMERAL_VARS:
            continue
        env.append(entry)

    for name in EPHEMERAL_VARS:
        prefix = name + "="
        for entry in previous_env:
            if entry.startswith(prefix):
                env.append(entry)
                break

    return cwd, env


class PosixInterpreter:
    """Terminal exec handler running scripts under bash."""

    def __init__(self, bash_path: Optional[str] = None):
        self._bash_path = bash_path

    @property
    def bash_path(self) -> str:
        if self._bash_path is None:
            self._bash_path = find_bash()
        if self._bash_path is None:
            raise ShellStartError("could not run command: bash interpreter not found")
        return self._bash_path

    def __call__(self, request: ExecRequest) -> ExecOutcome:
        return self.run(request)

    def run(self, request: ExecRequest) -> ExecOutcome:
        """Run ``request.script`` and capture output plus final state."""
        bash = self.bash_path
        script_fd, script_path = tempfile.mkstemp(prefix="agent-shell-", suffix=".sh")
        state_fd, state_path = tempfile.mkstemp(prefix="agent-shell-", suffix=".state")
        os.close(state_fd)
        try:
            with os.fdopen(script_fd, "w", encoding="utf-8") as f:
                f.write(request.script)
                f.write("\n")

            outcome = run_process(
                [bash, "--noprofile", "--norc", "-c", WRAPPER_SCRIPT, "agent-shell",
                 script_path, state_path],
                cwd=request.cwd,
                env=request.env,
                timeout=request.timeout,
                cancel=request.cancel,
            )

            result = ExecOutcome(
                stdout=outcome.stdout,
                stderr=outcome.stderr,
                returncode=outcome.returncode,
                interrupted=outcome.interrupted,
            )
            if outcome.interrupted:
                return result

            with open(state_path, "r", encoding="utf-8", errors="replace") as f:
                state = parse_state(f.read(), request.env)
            if state is None:
                logger.warning("Interpreter state was not captured; keeping previous state")
                return result

            result.cwd, result.env = state
            return result
        finally:
            for path in (script_path, state_path):
                try:
                    os.unlink(path)
                except FileNotFoundError:
                    pass


__all__ = [
    "PosixInterpreter",
    "WRAPPER_SCRIPT",
    "find_bash",
    "parse_state",
]
