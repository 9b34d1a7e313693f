"""Renderers drawing a running task tree."""

from .base import Renderer
from .default import DefaultRenderer
from .fallback import FallbackRenderer, FallbackRendererOptions
from .selector import RENDERERS, get_renderer_class, select_renderer
from .silent import SilentRenderer

__all__ = [
    "Renderer",
    "DefaultRenderer",
    "FallbackRenderer",
    "FallbackRendererOptions",
    "RENDERERS",
    "get_renderer_class",
    "select_renderer",
    "SilentRenderer",
]
