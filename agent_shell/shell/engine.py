"""Cross-platform shell execution with state persistence.

A ``Shell`` behaves like one long-lived interactive shell spread over many
``exec`` calls: the working directory and environment left behind by one
command are where the next one starts.

    shell = Shell(working_dir="/tmp")
    shell.exec("export FOO=bar")
    shell.exec("echo $FOO").stdout  # "bar\\n"

Only one command runs per instance at a time. Callers that need parallelism
use separate instances.
"""
from __future__ import annotations

import logging
import os
import sys
import threading
from typing import List, Optional, Sequence

from .dispatch import classify_command
from .errors import (
    ShellError,
    ShellExitError,
    ShellInterruptedError,
    exit_code,
)
from .handlers import ExecHandler, ExecOutcome, ExecRequest, block_handler, compose
from .native import change_directory, is_cd_command, native_argvs, wrap_native_command
from .parser import command_argvs
from .policy import BlockFunc
from .posix import PosixInterpreter
from .process import env_list_to_dict, run_process
from .types import ShellResult, ShellType

_default_logger = logging.getLogger(__name__)


class Shell:
    """Shell with a persisted working directory and environment.

    Args:
        working_dir: Starting directory (defaults to the process cwd)
        env: ``KEY=VALUE`` entries (defaults to the host environment)
        block_funcs: Block policy, evaluated in order before execution
        logger: Logger for finished commands
        platform: Host platform used for dispatch (defaults to sys.platform)
    """

    def __init__(
        self,
        working_dir: Optional[str] = None,
        env: Optional[Sequence[str]] = None,
        block_funcs: Optional[Sequence[BlockFunc]] = None,
        logger: Optional[logging.Logger] = None,
        platform: Optional[str] = None,
    ):
        self._cwd = str(working_dir) if working_dir else os.getcwd()
        if env is None:
            env = [f"{key}={value}" for key, value in os.environ.items()]
        self._env: List[str] = list(env)
        self._block_funcs: List[BlockFunc] = list(block_funcs or [])
        self._logger = logger or _default_logger
        self._platform = platform or sys.platform
        self._lock = threading.Lock()
        self._posix = PosixInterpreter()

    def exec(
        self,
        command: str,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ShellResult:
        """Execute ``command`` in the shell.

        Args:
            command: Shell source to run
            timeout: Seconds before the run is interrupted
            cancel: Event that interrupts the run when set

        Returns:
            ShellResult; ``error`` is None only for a successful run
        """
        with self._lock:
            shell_type = classify_command(command, self._platform)
            self._logger.debug(f"Dispatching command to {shell_type.value} shell: {command!r}")
            try:
                if shell_type is ShellType.POSIX:
                    result = self._exec_posix(command, timeout, cancel)
                else:
                    result = self._exec_native(shell_type, command, timeout, cancel)
            except ShellError as e:
                result = ShellResult(error=e)

            self._logger.info(
                f"Command finished: {command!r} "
                f"(shell={shell_type.value}, exit_code={exit_code(result.error)}, "
                f"error={result.error})"
            )
            return result

    def get_working_dir(self) -> str:
        with self._lock:
            return self._cwd

    def set_working_dir(self, path: str) -> None:
        """Set the working directory after checking that it exists.

        Raises:
            ShellError: If ``path`` is not an existing directory
        """
        path = str(path)
        with self._lock:
            if not os.path.isdir(path):
                raise ShellError(f"directory does not exist: {path}")
            self._cwd = path

    def get_env(self) -> List[str]:
        """Return a copy of the environment."""
        with self._lock:
            return list(self._env)

    def set_env(self, key: str, value: str) -> None:
        """Set ``key``, keeping the position of an existing entry."""
        prefix = key + "="
        with self._lock:
            for i, entry in enumerate(self._env):
                if entry.startswith(prefix):
                    self._env[i] = prefix + value
                    return
            self._env.append(prefix + value)

    def set_block_funcs(self, block_funcs: Sequence[BlockFunc]) -> None:
        """Replace the block policy; applies from the next ``exec``."""
        with self._lock:
            self._block_funcs = list(block_funcs)

    def _handler(self, terminal: ExecHandler) -> ExecHandler:
        return compose([block_handler(self._block_funcs)], terminal)

    def _exec_posix(
        self,
        command: str,
        timeout: Optional[float],
        cancel: Optional[threading.Event],
    ) -> ShellResult:
        request = ExecRequest(
            script=command,
            argvs=command_argvs(
                command,
                env_list_to_dict(self._env),
                strict=bool(self._block_funcs),
            ),
            cwd=self._cwd,
            env=list(self._env),
            timeout=timeout,
            cancel=cancel,
        )
        outcome = self._handler(self._posix)(request)

        if outcome.cwd is not None and outcome.env is not None:
            self._cwd = outcome.cwd
            self._env = outcome.env
        return self._result(outcome)

    def _exec_native(
        self,
        shell_type: ShellType,
        command: str,
        timeout: Optional[float],
        cancel: Optional[threading.Event],
    ) -> ShellResult:
        request = ExecRequest(
            script=command,
            argvs=native_argvs(command),
            cwd=self._cwd,
            env=list(self._env),
            timeout=timeout,
            cancel=cancel,
        )

        def run(request: ExecRequest) -> ExecOutcome:
            if is_cd_command(request.script):
                changed = change_directory(request.cwd, request.script)
                if changed.error is not None:
                    return ExecOutcome(stdout="", stderr=changed.stderr, returncode=1)
                return ExecOutcome(stdout="", stderr="", returncode=0, cwd=changed.cwd)

            outcome = run_process(
                wrap_native_command(shell_type, request.cwd, request.script),
                cwd=request.cwd,
                env=request.env,
                timeout=request.timeout,
                cancel=request.cancel,
            )
            return ExecOutcome(
                stdout=outcome.stdout,
                stderr=outcome.stderr,
                returncode=outcome.returncode,
                interrupted=outcome.interrupted,
            )

        outcome = self._handler(run)(request)
        if outcome.cwd is not None:
            self._cwd = outcome.cwd
        return self._result(outcome)

    @staticmethod
    def _result(outcome: ExecOutcome) -> ShellResult:
        error: Optional[ShellError] = None
        if outcome.interrupted:
            error = ShellInterruptedError(outcome.interrupted)
        elif outcome.returncode < 0:
            # killed by a signal we did not send
            error = ShellExitError(128 - outcome.returncode)
        elif outcome.returncode != 0:
            error = ShellExitError(outcome.returncode)
        return ShellResult(stdout=outcome.stdout, stderr=outcome.stderr, error=error)


__all__ = [
    "Shell",
]
