"""Tool registry, executor and builtin tools."""

from .builtin import register_builtin_tools
from .executor import ToolExecutor, ToolOutcome
from .factories import ToolContext
from .registry import ToolDefinition, ToolRegistry

__all__ = [
    "ToolContext",
    "ToolDefinition",
    "ToolExecutor",
    "ToolOutcome",
    "ToolRegistry",
    "register_builtin_tools",
]
