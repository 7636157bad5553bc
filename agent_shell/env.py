"""Environment lookup abstraction.

Resolvers look variables up through an ``Env`` so tests can supply a fixed
mapping instead of the host environment.
"""
from __future__ import annotations

import os
from typing import List, Mapping, Optional, Protocol


class Env(Protocol):
    def get(self, key: str) -> str:
        """Return the value of ``key``, or "" when unset."""
        ...

    def environ(self) -> Optional[List[str]]:
        """Return ``KEY=VALUE`` entries, or None when there are none."""
        ...


class OsEnv:
    """The host process environment."""

    def get(self, key: str) -> str:
        return os.environ.get(key, "")

    def environ(self) -> Optional[List[str]]:
        env = [f"{key}={value}" for key, value in os.environ.items()]
        return env or None


class MapEnv:
    """A fixed mapping of variables."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values = dict(values or {})

    def get(self, key: str) -> str:
        return self._values.get(key, "")

    def environ(self) -> Optional[List[str]]:
        if not self._values:
            return None
        return [f"{key}={value}" for key, value in self._values.items()]


__all__ = [
    "Env",
    "MapEnv",
    "OsEnv",
]
