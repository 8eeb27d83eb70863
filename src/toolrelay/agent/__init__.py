"""Orchestration loop and session wiring."""

from .loop import AgentLoop, CycleResult, CycleStatus, LoopState
from .session import AgentSession, build_session

__all__ = ["AgentLoop", "AgentSession", "CycleResult", "CycleStatus", "LoopState", "build_session"]
