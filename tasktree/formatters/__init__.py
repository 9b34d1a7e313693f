"""Formatters package for tasktree terminal output.

The main entry point is `OutputFormatter`, which owns the Rich console and
the `SymbolsFormatter` used by every renderer.

Usage:
    output = OutputFormatter(no_color=False)
    output.print(f"{output.symbols.Tick} done")
"""

from .output import OutputFormatter
from .symbols import Symbols, SymbolsFormatter

__all__ = [
    "OutputFormatter",
    "Symbols",
    "SymbolsFormatter",
]
