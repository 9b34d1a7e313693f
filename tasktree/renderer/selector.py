"""Renderer selection, made once per run."""

from typing import Any, Callable, Union

from ..errors import ConfigurationError
from .base import Renderer
from .default import DefaultRenderer
from .fallback import FallbackRenderer
from .silent import SilentRenderer

RENDERERS: dict[str, type[Renderer]] = {
    "default": DefaultRenderer,
    "fallback": FallbackRenderer,
    "verbose": FallbackRenderer,
    "silent": SilentRenderer,
}


def get_renderer_class(renderer: Any) -> type[Renderer]:
    """Map a renderer identifier to its class.

    Args:
        renderer: A name from RENDERERS or a Renderer subclass

    Raises:
        ConfigurationError: If the renderer is unknown
    """
    if isinstance(renderer, type) and issubclass(renderer, Renderer):
        return renderer
    if isinstance(renderer, str) and renderer in RENDERERS:
        return RENDERERS[renderer]
    raise ConfigurationError(
        f"Unknown renderer {renderer!r} (expected one of {', '.join(sorted(RENDERERS))} or a Renderer subclass)"
    )


def _condition(value: Union[bool, Callable[[], bool], None]) -> Union[bool, None]:
    if callable(value):
        return bool(value())
    return value


def select_renderer(
    renderer: Any = "default",
    fallback_renderer: Any = "fallback",
    renderer_fallback: Union[bool, Callable[[], bool], None] = None,
    renderer_silent: Union[bool, Callable[[], bool], None] = None,
    is_terminal: bool = True,
) -> type[Renderer]:
    """Choose the renderer class for a run.

    Silent wins over everything. The fallback renderer replaces a requested
    renderer that cannot drive a non-interactive stream when the fallback
    condition holds, or when it is unset and the stream is not a terminal.

    Args:
        renderer: Requested renderer
        fallback_renderer: Renderer to fall back to
        renderer_fallback: Fallback condition; None decides from ``is_terminal``
        renderer_silent: Silent condition
        is_terminal: Whether the output stream supports live redraws

    Returns:
        The renderer class to instantiate
    """
    requested = get_renderer_class(renderer)

    if _condition(renderer_silent):
        return SilentRenderer

    fallback = _condition(renderer_fallback)
    if not requested.nontty and (fallback or (fallback is None and not is_terminal)):
        return get_renderer_class(fallback_renderer)

    return requested
