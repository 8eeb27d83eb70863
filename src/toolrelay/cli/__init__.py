"""Terminal front-end for toolrelay."""

from .app import app
from .render import Renderer, create_cli_renderer

__all__ = ["Renderer", "app", "create_cli_renderer"]
