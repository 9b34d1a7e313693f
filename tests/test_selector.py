"""Tests for renderer selection."""

import pytest

from tasktree.errors import ConfigurationError
from tasktree.renderer import (
    DefaultRenderer,
    FallbackRenderer,
    Renderer,
    SilentRenderer,
    get_renderer_class,
    select_renderer,
)


class CustomRenderer(Renderer):
    def render(self):
        pass

    def end(self, error=None):
        pass


class TestGetRendererClass:
    """Tests for get_renderer_class()."""

    @pytest.mark.parametrize("name,cls", [
        ("default", DefaultRenderer),
        ("fallback", FallbackRenderer),
        ("verbose", FallbackRenderer),
        ("silent", SilentRenderer),
    ])
    def test_names(self, name, cls):
        assert get_renderer_class(name) is cls

    def test_renderer_subclass(self):
        assert get_renderer_class(CustomRenderer) is CustomRenderer

    def test_unknown(self):
        with pytest.raises(ConfigurationError, match="fancy"):
            get_renderer_class("fancy")


class TestSelectRenderer:
    """Tests for select_renderer()."""

    def test_terminal_keeps_requested(self):
        assert select_renderer("default", is_terminal=True) is DefaultRenderer

    def test_non_terminal_falls_back(self):
        assert select_renderer("default", is_terminal=False) is FallbackRenderer

    def test_silent_wins(self):
        assert select_renderer("default", renderer_silent=True, renderer_fallback=True) is SilentRenderer

    def test_silent_callable(self):
        assert select_renderer("default", renderer_silent=lambda: True) is SilentRenderer

    def test_forced_fallback_on_terminal(self):
        assert select_renderer("default", renderer_fallback=True, is_terminal=True) is FallbackRenderer

    def test_forbidden_fallback_on_non_terminal(self):
        assert select_renderer("default", renderer_fallback=lambda: False, is_terminal=False) is DefaultRenderer

    def test_nontty_renderer_is_never_replaced(self):
        assert select_renderer("silent", renderer_fallback=True) is SilentRenderer
        assert select_renderer("fallback", fallback_renderer="silent", is_terminal=False) is FallbackRenderer

    def test_custom_fallback_renderer(self):
        assert select_renderer("default", fallback_renderer="silent", is_terminal=False) is SilentRenderer
