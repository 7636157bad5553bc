"""Shared test fixtures and helpers for the agent-shell test suite."""
import sys

import pytest

from agent_shell.shell.posix import find_bash


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "posix: tests that run real commands under bash",
    )


def pytest_collection_modifyitems(config, items):
    if find_bash() is not None and not sys.platform.startswith("win"):
        return
    skip = pytest.mark.skip(reason="bash is not available on this host")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def workdir(tmp_path):
    """A project directory with one subdirectory, ``sub``."""
    (tmp_path / "sub").mkdir()
    return tmp_path


@pytest.fixture
def anyio_backend():
    """The toolset runs on asyncio (``asyncio.to_thread``); don't run under trio."""
    return "asyncio"
