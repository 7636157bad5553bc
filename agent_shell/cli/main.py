#!/usr/bin/env python
"""Run commands and resolve values with the agent shell.

Usage:
    agent-shell run "cd src" "ls -la"          # one shell, state carries over
    agent-shell resolve 'Bearer $(pass show api-token)'
    agent-shell classify "Get-ChildItem | Where-Object Length" --platform win32

Configuration:
    agent-shell.toml in the --config directory (default: current directory)
    controls the block policy, timeouts and the working directory.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console

from ..config import AgentShellConfig, ConfigError, load_config
from ..env import OsEnv
from ..resolve import (
    EnvironmentVariableResolver,
    ShellVariableResolver,
    VariableResolutionError,
)
from ..shell import Shell, classify_command

logger = logging.getLogger(__name__)

LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def _configure_logging(verbosity: int) -> None:
    logging.basicConfig(
        level=LOG_LEVELS.get(verbosity, logging.DEBUG),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run_commands(
    args: argparse.Namespace,
    config: AgentShellConfig,
    console: Console,
) -> int:
    working_dir: Optional[str] = args.cwd
    if working_dir is None and config.shell.working_dir is not None:
        working_dir = str(config.shell.working_dir)

    shell = Shell(
        working_dir=working_dir,
        block_funcs=[] if args.no_policy else config.block_funcs(),
    )

    code = 0
    for command in args.commands:
        result = shell.exec(command, timeout=args.timeout)
        if result.stdout:
            sys.stdout.write(result.stdout)
        if result.stderr:
            sys.stderr.write(result.stderr)
        code = result.exit_code
        if result.interrupted:
            console.print(f"[red]Command was aborted before completion:[/red] {command}")
            return code
        if result.error is not None and not result.stderr:
            console.print(f"[red]Error:[/red] {result.error}")
    return code


def _resolve(args: argparse.Namespace, config: AgentShellConfig) -> int:
    env = OsEnv()
    if args.env_only:
        resolver = EnvironmentVariableResolver(env)
    else:
        resolver = ShellVariableResolver(env, timeout=config.shell.resolve_timeout)
    print(resolver.resolve_value(args.value))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-shell",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        default=".",
        metavar="DIR",
        help="Directory containing agent-shell.toml (default: current directory)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log progress (-v for commands, -vv for dispatch and resolution)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show full tracebacks on error",
    )
    subparsers = parser.add_subparsers(dest="action", required=True)

    run_parser = subparsers.add_parser("run", help="Run commands in one persistent shell")
    run_parser.add_argument("commands", nargs="+", help="Commands, run in order")
    run_parser.add_argument("--cwd", help="Starting working directory")
    run_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Timeout per command in seconds",
    )
    run_parser.add_argument(
        "--no-policy",
        action="store_true",
        help="Do not install the block policy",
    )

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a configuration value")
    resolve_parser.add_argument("value", help="Value such as '$HOME' or '$(pass show key)'")
    resolve_parser.add_argument(
        "--env-only",
        action="store_true",
        help="Legacy mode: only a leading $NAME is resolved, no commands run",
    )

    classify_parser = subparsers.add_parser("classify", help="Show which shell a command runs in")
    classify_parser.add_argument("command", help="Command text")
    classify_parser.add_argument(
        "--platform",
        default=sys.platform,
        help="Platform to classify for (default: this host)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the agent-shell CLI.

    Returns:
        Exit code (the last command's exit code for ``run``)
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    console = Console(stderr=True)

    try:
        if args.action == "classify":
            print(classify_command(args.command, args.platform).value)
            return 0

        config = load_config(Path(args.config))
        if config.path is not None:
            logger.info(f"Loaded config from {config.path}")
        if args.action == "run":
            return _run_commands(args, config, console)
        return _resolve(args, config)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        if args.debug:
            raise
        return 1
    except VariableResolutionError as e:
        console.print(f"[red]Error:[/red] {e}")
        if args.debug:
            raise
        return 1
    except KeyboardInterrupt:
        console.print("\nAborted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
