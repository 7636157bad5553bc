"""Toolset implementations shipped with agent-shell.

Toolsets live in this package to support plugin-style loading by class path.
"""

from .shell import ShellToolset

__all__ = [
    "ShellToolset",
]
