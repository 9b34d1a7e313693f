"""Pytest configuration and shared fixtures."""

from io import StringIO

import pytest
from rich.console import Console

from tasktree.formatters import OutputFormatter


@pytest.fixture
def console() -> Console:
    """Return a non-interactive console writing to memory."""
    return Console(
        file=StringIO(),
        width=80,
        color_system=None,
        force_terminal=False,
        legacy_windows=False,
    )


@pytest.fixture
def output(console: Console) -> OutputFormatter:
    """Return an OutputFormatter bound to the in-memory console."""
    return OutputFormatter(console=console)


@pytest.fixture
def silent() -> dict:
    """Run options that keep the terminal untouched."""
    return {"renderer": "silent", "register_signal_listeners": False}

