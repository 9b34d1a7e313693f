"""Output formatter - the main entry point for terminal output.

Provides a centralized formatter owning the Rich console and the symbols
formatter. Renderers build Rich Text objects and print them through this
console, which handles no_color mode.

Usage:
    output = OutputFormatter(no_color=False)
    output.print(Text(f"{output.symbols.Tick} done"))
"""

from typing import Optional, Union

from rich.console import Console
from rich.text import Text

from .symbols import SymbolsFormatter


class OutputFormatter:
    """Central formatter that manages the Rich console and figures.

    Attributes:
        console: The Rich console for output
        symbols: SymbolsFormatter for unicode/ASCII figures

    Example:
        output = OutputFormatter(no_color=False)
        output.print(f"{output.symbols.Tick} Task completed!")
    """

    def __init__(self, no_color: bool = False, console: Optional[Console] = None):
        """Initialize the output formatter.

        Args:
            no_color: If True, disable all colors and unicode figures
            console: Console to write to; a stdout console is created when omitted
        """
        self._no_color = no_color

        if console is None:
            console = Console(
                no_color=no_color,
                force_terminal=None,
                highlight=False,
            )
        elif no_color:
            console.no_color = True
        self._console = console

        self._symbols = SymbolsFormatter(no_color=no_color, encoding=console.encoding)

    @property
    def console(self) -> Console:
        """Get the underlying Rich console."""
        return self._console

    @property
    def symbols(self) -> SymbolsFormatter:
        """Get the symbols formatter.

        Usage:
            output.symbols.Tick   # Returns "✔" or "+"
            output.symbols.Cross  # Returns "✖" or "x"
        """
        return self._symbols

    @property
    def supports_unicode(self) -> bool:
        """Check if terminal supports unicode figures."""
        return self._symbols.supports_unicode

    @property
    def no_color(self) -> bool:
        """Check if colors are disabled."""
        return self._no_color

    def print(self, message: Union[str, Text]) -> None:
        """Print message using Rich console.

        Args:
            message: Message to print (string or Rich Text)
        """
        self._console.print(message, highlight=False, soft_wrap=True)
