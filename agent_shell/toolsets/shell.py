"""Persistent bash tool as a PydanticAI toolset.

This module provides ShellToolset which:
1. Exposes the `bash` tool to LLMs
2. Runs every call on the persistent shell for its working directory, so
   `cd` and `export` carry over between calls
3. Pre-approves read-only commands via `needs_approval()` and asks for
   approval for everything else
4. Leaves refusals to the shell's block policy, which reports them as a
   security refusal in the tool output

Security note: the block policy is an argv predicate, not an OS sandbox.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Literal, Optional, Type, cast

from pydantic import BaseModel, Field, TypeAdapter
from pydantic_ai.tools import ToolDefinition
from pydantic_ai.toolsets import AbstractToolset, ToolsetTool
from pydantic_ai.toolsets.abstract import SchemaValidatorProt
from pydantic_ai_blocking_approval import (
    ApprovalConfig,
    ApprovalResult,
    needs_approval_from_config,
)

from ..shell import PersistentShells, ShellResult, is_safe_read_only
from ..shell.policy import default_block_funcs

logger = logging.getLogger(__name__)

BASH_TOOL_NAME = "bash"

DEFAULT_TIMEOUT_MS = 60 * 1000
MAX_TIMEOUT_MS = 10 * 60 * 1000
MAX_OUTPUT_LENGTH = 30_000
NO_OUTPUT = "no output"


class BashArgs(BaseModel):
    """Arguments for bash."""

    command: str = Field(description="The command to execute")
    timeout: int = Field(
        default=0,
        description="Optional timeout in milliseconds (max 600000)",
    )


class BashResult(BaseModel):
    """Result returned to the model for one bash call."""

    output: str
    exit_code: int
    interrupted: bool = False
    working_directory: str
    start_time: int = Field(description="Start time in Unix milliseconds")
    end_time: int = Field(description="End time in Unix milliseconds")


class _DictArgsValidator:
    """Validate tool args against a model but hand ``call_tool`` a dict."""

    def __init__(self, schema: Type[BaseModel]) -> None:
        self._validator = TypeAdapter(schema).validator

    def validate_python(
        self,
        input: Any,
        *,
        allow_partial: bool | Literal["off", "on", "trailing-strings"] = False,
        **kwargs: Any,
    ) -> dict[str, Any]:
        return self._validator.validate_python(input, allow_partial=allow_partial, **kwargs).model_dump()

    def validate_json(
        self,
        input: str | bytes | bytearray,
        *,
        allow_partial: bool | Literal["off", "on", "trailing-strings"] = False,
        **kwargs: Any,
    ) -> dict[str, Any]:
        return self._validator.validate_json(input, allow_partial=allow_partial, **kwargs).model_dump()

    def validate_strings(self, data: Any, **kwargs: Any) -> dict[str, Any]:
        return self._validator.validate_strings(data, **kwargs).model_dump()


def _count_lines(text: str) -> int:
    if not text:
        return 0
    return len(text.split("\n"))


def truncate_output(content: str, max_length: int = MAX_OUTPUT_LENGTH) -> str:
    """Keep the head and tail of ``content``, dropping the middle."""
    if len(content) <= max_length:
        return content

    half = max_length // 2
    start = content[:half]
    end = content[len(content) - half:]
    dropped = _count_lines(content[half:len(content) - half])
    return f"{start}\n\n... [{dropped} lines truncated] ...\n\n{end}"


def clamp_timeout(timeout_ms: int, default_ms: int = DEFAULT_TIMEOUT_MS, max_ms: int = MAX_TIMEOUT_MS) -> int:
    if timeout_ms > max_ms:
        return max_ms
    if timeout_ms <= 0:
        return default_ms
    return timeout_ms


def format_output(result: ShellResult, working_dir: str, max_length: int = MAX_OUTPUT_LENGTH) -> str:
    """Assemble what the model sees for one command."""
    stdout = truncate_output(result.stdout, max_length)
    stderr = truncate_output(result.stderr, max_length)

    error_message = stderr
    if not error_message and result.error is not None:
        error_message = str(result.error)

    if result.interrupted:
        if error_message:
            error_message += "\n"
        error_message += "Command was aborted before completion"
    elif result.exit_code != 0:
        if error_message:
            error_message += "\n"
        error_message += f"Exit code {result.exit_code}"

    output = stdout
    if stdout and stderr:
        output += "\n"
    if error_message:
        output += "\n" + error_message

    if not output:
        return NO_OUTPUT
    return f"{output}\n\n<cwd>{working_dir}</cwd>"


class ShellToolset(AbstractToolset[Any]):
    """Persistent bash tool for PydanticAI agents.

    Example:
        shells = PersistentShells(block_funcs=default_block_funcs())
        toolset = ShellToolset(config={"working_dir": "/repo"}, shells=shells)
        agent = Agent(..., toolsets=[toolset])
    """

    def __init__(
        self,
        config: dict,
        shells: Optional[PersistentShells] = None,
        id: Optional[str] = None,
        max_retries: int = 1,
    ):
        """Initialize the bash toolset.

        Args:
            config: Configuration dict. Supports:
                - working_dir: Directory of the persistent shell (default: cwd)
                - default_timeout_ms / max_timeout_ms: Timeout policy
                - max_output_length: Truncation limit per stream
            shells: Owner of the persistent shells (default: a new one with
                the standard block policy)
            id: Optional toolset ID for durable execution
            max_retries: Maximum retries for tool calls
        """
        self._config = config
        self._shells = shells if shells is not None else PersistentShells(
            block_funcs=default_block_funcs()
        )
        self._id = id
        self._max_retries = max_retries

    @property
    def id(self) -> str | None:
        """Return toolset ID for durable execution."""
        return self._id

    @property
    def config(self) -> dict:
        """Return the toolset configuration."""
        return self._config

    @property
    def working_dir(self) -> str:
        return str(self._config.get("working_dir") or ".")

    def needs_approval(
        self,
        name: str,
        tool_args: dict,
        ctx: Any,
        config: ApprovalConfig | None = None,
    ) -> ApprovalResult:
        """Pre-approve read-only commands; everything else needs approval."""
        base = needs_approval_from_config(name, config)
        if base.is_blocked or base.is_pre_approved:
            return base

        if name != BASH_TOOL_NAME:
            return ApprovalResult.needs_approval()

        if is_safe_read_only(tool_args.get("command", "")):
            return ApprovalResult.pre_approved()
        return ApprovalResult.needs_approval()

    def get_approval_description(self, name: str, tool_args: dict, ctx: Any) -> str:
        if name != BASH_TOOL_NAME:
            return f"{name}({tool_args})"

        command = tool_args.get("command", "")
        truncated = command[:80] + "..." if len(command) > 80 else command
        return f"Execute command: {truncated}"

    async def get_tools(self, ctx: Any) -> dict[str, ToolsetTool]:
        """Return the bash tool definition."""
        return {
            BASH_TOOL_NAME: ToolsetTool(
                toolset=self,
                tool_def=ToolDefinition(
                    name=BASH_TOOL_NAME,
                    description=(
                        "Executes a bash command in a persistent shell session. "
                        "The working directory and exported variables carry over "
                        "between calls. Use bash syntax on every platform. Some "
                        "commands (network tools, package installs, privilege "
                        "escalation) are refused for security reasons."
                    ),
                    parameters_json_schema=BashArgs.model_json_schema(),
                ),
                max_retries=self._max_retries,
                args_validator=cast(SchemaValidatorProt, _DictArgsValidator(BashArgs)),
            )
        }

    async def call_tool(
        self,
        name: str,
        tool_args: dict[str, Any],
        ctx: Any,
        tool: ToolsetTool[Any],
    ) -> BashResult:
        """Run the command on the persistent shell."""
        command = tool_args["command"]
        if not command:
            raise ValueError("missing command")

        timeout_ms = clamp_timeout(
            tool_args.get("timeout", 0),
            default_ms=self._config.get("default_timeout_ms", DEFAULT_TIMEOUT_MS),
            max_ms=self._config.get("max_timeout_ms", MAX_TIMEOUT_MS),
        )
        shell = self._shells.get(self.working_dir)
        logger.debug(f"Running bash tool in {shell.get_working_dir()}: {command!r}")

        start_time = int(time.time() * 1000)
        cancel = threading.Event()
        try:
            result = await asyncio.to_thread(
                shell.exec, command, timeout=timeout_ms / 1000, cancel=cancel
            )
        except asyncio.CancelledError:
            cancel.set()
            raise
        end_time = int(time.time() * 1000)

        current_dir = shell.get_working_dir()
        return BashResult(
            output=format_output(
                result,
                current_dir,
                self._config.get("max_output_length", MAX_OUTPUT_LENGTH),
            ),
            exit_code=result.exit_code,
            interrupted=result.interrupted,
            working_directory=current_dir,
            start_time=start_time,
            end_time=end_time,
        )


__all__ = [
    "BASH_TOOL_NAME",
    "BashArgs",
    "BashResult",
    "ShellToolset",
    "clamp_timeout",
    "format_output",
    "truncate_output",
]
