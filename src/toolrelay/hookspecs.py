"""Pluggy hook namespace and presentation hook specifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from toolrelay.agent.loop import CycleResult
    from toolrelay.conversation import Snapshot

TOOLRELAY_HOOK_NAMESPACE = "toolrelay"
hookspec = pluggy.HookspecMarker(TOOLRELAY_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(TOOLRELAY_HOOK_NAMESPACE)


class ToolRelayHookSpecs:
    """Hook contract for presentation sinks observing a session."""

    @hookspec
    def toolrelay_snapshot(self, session_id: str, turns: Snapshot) -> None:
        """Receive the full turn log after every append."""

    @hookspec
    def toolrelay_step(self, session_id: str, step: int, max_steps: int) -> None:
        """Observe the start of one model call within a cycle."""

    @hookspec
    def toolrelay_cycle_end(self, session_id: str, result: CycleResult) -> None:
        """Observe the terminal state of one cycle."""

    @hookspec
    def toolrelay_error(self, stage: str, error: Exception) -> None:
        """Observe failures raised by the loop or by other hook implementations."""
