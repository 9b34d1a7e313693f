"""String utilities for terminal line layout.

All helpers work on Rich Text so styles survive truncation and wrapping,
and measure width in terminal cells rather than characters.
"""

from __future__ import annotations

from typing import Union

from rich.console import Console
from rich.text import Text

TextLike = Union[str, Text]


def to_text(value: TextLike) -> Text:
    """Return ``value`` as a Text instance without copying existing Text."""
    if isinstance(value, Text):
        return value
    return Text(value)


def strip(value: TextLike) -> Text:
    """Strip leading and trailing whitespace, keeping styles."""
    text = to_text(value)
    plain = text.plain
    stripped = plain.strip()
    if not stripped:
        return Text("")
    start = len(plain) - len(plain.lstrip())
    return text[start:start + len(stripped)]


def truncate(value: TextLike, width: int) -> Text:
    """Shorten text to at most ``width`` cells, ending in an ellipsis when cut.

    Text that already fits is returned unchanged.
    """
    text = to_text(value).copy()
    text.truncate(max(1, width), overflow="ellipsis")
    return text


def wrap(value: TextLike, width: int, console: Console) -> list[Text]:
    """Hard-wrap text so that no line exceeds ``width`` cells.

    Words longer than the width are folded.
    """
    return list(to_text(value).wrap(console, max(1, width), overflow="fold"))


def indent(value: TextLike, count: int) -> Text:
    """Prefix non-empty text with ``count`` spaces."""
    text = to_text(value)
    if count <= 0 or not text.plain:
        return text
    return Text(" " * count) + text


def format_duration(seconds: float) -> str:
    """Format a duration for display, e.g. ``2.3s`` or ``1m 5s``."""
    if seconds < 60.0:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}m {secs:.0f}s"
