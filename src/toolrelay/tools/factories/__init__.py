"""Builtin tool factories."""

from .sandbox import create_javascript_tool
from .shared import ToolContext
from .web import create_google_search_tool
from .workflow import create_workflow_tool

__all__ = [
    "ToolContext",
    "create_google_search_tool",
    "create_javascript_tool",
    "create_workflow_tool",
]
