"""Builtin tool registration."""

from __future__ import annotations

from loguru import logger

from toolrelay.tools.factories import (
    ToolContext,
    create_google_search_tool,
    create_javascript_tool,
    create_workflow_tool,
)
from toolrelay.tools.registry import ToolRegistry


def register_builtin_tools(registry: ToolRegistry, context: ToolContext) -> ToolRegistry:
    """Register search, workflow and JavaScript tools in model-facing order."""
    for factory in (create_google_search_tool, create_workflow_tool, create_javascript_tool):
        definition = registry.register(factory(context))
        logger.debug("tool.registered name={}", definition.name)
    return registry
