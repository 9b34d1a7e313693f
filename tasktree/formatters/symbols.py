"""Status figures with unicode/ASCII fallbacks.

Provides a clean API for accessing figures that automatically fall back
to ASCII when unicode support is not available or colors are disabled.

Usage:
    symbols = SymbolsFormatter()
    print(symbols.Tick)     # Returns "✔" or "+"
    print(symbols.spinner)  # Braille frames or "-\\|/"
"""

import os
import platform
import sys
from dataclasses import dataclass
from functools import cached_property
from typing import Optional


@dataclass(frozen=True)
class Symbol:
    """A figure with unicode and ASCII fallback."""

    unicode: str
    ascii: str


class Symbols:
    """Figure definitions as class attributes."""

    # Task states
    Tick = Symbol("✔", "+")
    Cross = Symbol("✖", "x")
    Warning = Symbol("⚠", "!")
    Pointer = Symbol("❯", ">")
    PointerSmall = Symbol("›", ">")
    ArrowDown = Symbol("↓", "v")
    ArrowLeft = Symbol("←", "<")
    SquareSmallFilled = Symbol("◼", "#")

    # Fallback renderer
    Play = Symbol("▶", ">")
    Refresh = Symbol("↻", "~")


SPINNER_UNICODE = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")
SPINNER_ASCII = ("-", "\\", "|", "/")


class SymbolsFormatter:
    """Provides figures with automatic unicode/ASCII fallback based on terminal support.

    Unicode is disabled when no_color=True or when the terminal doesn't support it.
    """

    def __init__(self, no_color: bool = False, encoding: Optional[str] = None):
        """Initialize the symbols formatter.

        Args:
            no_color: If True, always use ASCII figures
            encoding: Output encoding; defaults to the encoding of stdout
        """
        self._no_color = no_color
        self._encoding = encoding

    @cached_property
    def supports_unicode(self) -> bool:
        """Detect if the terminal can display the unicode figures."""
        if self._no_color:
            return False

        # Legacy Windows consoles; Windows Terminal sets WT_SESSION
        if platform.system() == "Windows" and not os.environ.get("WT_SESSION"):
            return False

        encoding = self._encoding or getattr(sys.stdout, "encoding", None)
        if not encoding:
            return False

        encoding = encoding.lower()
        unicode_encodings = ['utf-8', 'utf8', 'utf-16', 'utf16']

        return any(enc in encoding for enc in unicode_encodings)

    def _resolve(self, symbol: Symbol) -> str:
        """Resolve a figure to unicode or ASCII based on support."""
        return symbol.unicode if self.supports_unicode else symbol.ascii

    def get(self, symbol: Symbol) -> str:
        """Get the resolved figure string.

        Args:
            symbol: A Symbol instance to resolve

        Returns:
            Unicode or ASCII string based on terminal support
        """
        return self._resolve(symbol)

    @property
    def spinner(self) -> tuple[str, ...]:
        """Spinner animation frames."""
        return SPINNER_UNICODE if self.supports_unicode else SPINNER_ASCII

    @property
    def Tick(self) -> str:
        return self._resolve(Symbols.Tick)

    @property
    def Cross(self) -> str:
        return self._resolve(Symbols.Cross)

    @property
    def Warning(self) -> str:
        return self._resolve(Symbols.Warning)

    @property
    def Pointer(self) -> str:
        return self._resolve(Symbols.Pointer)

    @property
    def PointerSmall(self) -> str:
        return self._resolve(Symbols.PointerSmall)

    @property
    def ArrowDown(self) -> str:
        return self._resolve(Symbols.ArrowDown)

    @property
    def ArrowLeft(self) -> str:
        return self._resolve(Symbols.ArrowLeft)

    @property
    def SquareSmallFilled(self) -> str:
        return self._resolve(Symbols.SquareSmallFilled)

    @property
    def Play(self) -> str:
        return self._resolve(Symbols.Play)

    @property
    def Refresh(self) -> str:
        return self._resolve(Symbols.Refresh)
