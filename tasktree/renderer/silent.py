"""Silent renderer: runs tasks without writing anything."""

from typing import Optional

from .base import Renderer


class SilentRenderer(Renderer):
    """Renderer that suppresses all output."""

    nontty = True

    def render(self) -> None:
        """Start the renderer - no-op for silent renderer."""
        pass

    def end(self, error: Optional[BaseException] = None) -> None:
        """Stop the renderer - no-op for silent renderer."""
        pass
