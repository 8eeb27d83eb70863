"""toolrelay - let a model call tools, one bounded cycle at a time."""

from .agent import AgentLoop, AgentSession, CycleResult, CycleStatus, build_session
from .conversation import Conversation
from .tools import ToolDefinition, ToolExecutor, ToolRegistry

__version__ = "0.1.0"

__all__ = [
    "AgentLoop",
    "AgentSession",
    "Conversation",
    "CycleResult",
    "CycleStatus",
    "ToolDefinition",
    "ToolExecutor",
    "ToolRegistry",
    "build_session",
]
