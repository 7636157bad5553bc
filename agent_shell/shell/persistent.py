"""Long-lived shells owned by the application.

The application builds one ``PersistentShells`` at its composition root and
passes it to whatever needs "the" shell for a working directory. Tools that
share a directory share a shell, so a ``cd`` or ``export`` issued by one call
is visible to the next.
"""
from __future__ import annotations

import logging
import os
import threading
from typing import Dict, Optional, Sequence

from .engine import Shell
from .policy import BlockFunc

logger = logging.getLogger(__name__)


class PersistentShells:
    """One lazily created ``Shell`` per working directory."""

    def __init__(
        self,
        block_funcs: Optional[Sequence[BlockFunc]] = None,
        env: Optional[Sequence[str]] = None,
    ):
        self._block_funcs = list(block_funcs or [])
        self._env = list(env) if env is not None else None
        self._shells: Dict[str, Shell] = {}
        self._lock = threading.Lock()

    def get(self, working_dir: str) -> Shell:
        """Return the shell for ``working_dir``, creating it on first use."""
        key = os.path.abspath(str(working_dir))
        with self._lock:
            shell = self._shells.get(key)
            if shell is None:
                logger.debug(f"Creating persistent shell for {key}")
                shell = Shell(
                    working_dir=key,
                    env=self._env,
                    block_funcs=self._block_funcs,
                    logger=logger,
                )
                self._shells[key] = shell
            return shell

    def set_block_funcs(self, block_funcs: Sequence[BlockFunc]) -> None:
        """Install a new policy on every current and future shell."""
        with self._lock:
            self._block_funcs = list(block_funcs)
            for shell in self._shells.values():
                shell.set_block_funcs(self._block_funcs)

    def __len__(self) -> int:
        with self._lock:
            return len(self._shells)


__all__ = [
    "PersistentShells",
]
