"""Bounded model/tool orchestration loop for one session."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from toolrelay.config import Settings, SettingsProvider
from toolrelay.conversation import (
    ERROR_KIND_MAX_ITERATIONS,
    Conversation,
    ErrorTurn,
    SystemTurn,
    UserTurn,
    validate_wire_view,
)
from toolrelay.errors import CycleInProgressError
from toolrelay.hook_runtime import HookRuntime
from toolrelay.model_client import ModelClientProtocol
from toolrelay.tools.executor import ToolExecutor
from toolrelay.tools.registry import ToolRegistry


class LoopState(StrEnum):
    AWAITING_INPUT = "awaiting_input"
    MODEL_CALL = "model_call"
    TOOL_DISPATCH = "tool_dispatch"
    TERMINAL = "terminal"


class CycleStatus(StrEnum):
    ANSWERED = "answered"
    MAX_ITERATIONS = "max_iterations"
    ERROR = "error"


@dataclass(frozen=True)
class CycleResult:
    """Outcome of one user submission."""

    status: CycleStatus
    iterations: int
    answer: str | None = None
    error: str | None = None

    @property
    def answered(self) -> bool:
        return self.status is CycleStatus.ANSWERED


class AgentLoop:
    """Drives model calls and tool dispatch until an answer, the ceiling, or a failure.

    The loop is the only writer of its conversation. Model calls are strictly
    sequential; only the tool dispatch of one assistant turn fans out.
    """

    def __init__(
        self,
        *,
        conversation: Conversation,
        registry: ToolRegistry,
        model_client: ModelClientProtocol,
        settings_provider: SettingsProvider,
        system_prompt: Callable[[Settings], str],
        executor: ToolExecutor | None = None,
        hooks: HookRuntime | None = None,
        session_id: str = "-",
    ) -> None:
        self._conversation = conversation
        self._registry = registry
        self._model_client = model_client
        self._settings_provider = settings_provider
        self._system_prompt = system_prompt
        self._executor = executor or ToolExecutor(registry)
        self._hooks = hooks
        self._session_id = session_id
        self.state = LoopState.AWAITING_INPUT

    @property
    def busy(self) -> bool:
        return self.state in (LoopState.MODEL_CALL, LoopState.TOOL_DISPATCH)

    async def submit(self, text: str) -> CycleResult:
        """Run one cycle for a user submission.

        Raises ``CycleInProgressError`` if a cycle is already running; the
        conversation is left untouched in that case.
        """
        if self.busy:
            raise CycleInProgressError("A cycle is already running for this session")
        if not text.strip():
            raise ValueError("Submission must not be empty")

        self.state = LoopState.MODEL_CALL
        try:
            result = await self._run_cycle(text)
        finally:
            self.state = LoopState.TERMINAL

        logger.info(
            "agent.cycle.end status={} iterations={} error={}",
            result.status.value,
            result.iterations,
            result.error,
        )
        self._notify("toolrelay_cycle_end", result=result)
        return result

    async def _run_cycle(self, text: str) -> CycleResult:
        settings = self._settings_provider()
        max_iterations = settings.max_iterations

        if len(self._conversation) == 0:
            self._conversation.append(SystemTurn(self._system_prompt(settings)))
        self._conversation.append(UserTurn(text))
        logger.info("agent.cycle.start max_iterations={}", max_iterations)

        step = 0
        try:
            while step < max_iterations:
                step += 1
                self.state = LoopState.MODEL_CALL
                logger.info("agent.step step={}/{}", step, max_iterations)
                self._notify("toolrelay_step", step=step, max_steps=max_iterations)

                validate_wire_view(self._conversation.wire_view())
                assistant = await self._model_client.complete(
                    self._conversation.wire_messages(),
                    self._registry.schemas(),
                )
                self._conversation.append(assistant)

                if not assistant.has_tool_requests:
                    return CycleResult(CycleStatus.ANSWERED, step, answer=assistant.text or "")

                self.state = LoopState.TOOL_DISPATCH
                results = await self._executor.run(assistant.tool_requests, self._conversation.append)
                self._conversation.extend(results)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.opt(exception=True).error("agent.cycle.error step={} error={}", step, message)
            if self._hooks is not None:
                self._hooks.notify_error(stage="agent.cycle", error=exc)
            self._conversation.append(ErrorTurn(f"Error occurred: {message}"))
            return CycleResult(CycleStatus.ERROR, step, error=message)

        notice = (
            f"Agent reached maximum loop limit ({max_iterations} steps). "
            "The task may not be fully complete."
        )
        logger.warning("agent.max_iterations max_iterations={}", max_iterations)
        self._conversation.append(ErrorTurn(notice, kind=ERROR_KIND_MAX_ITERATIONS))
        return CycleResult(CycleStatus.MAX_ITERATIONS, step, error=notice)

    def _notify(self, hook_name: str, **kwargs: object) -> None:
        if self._hooks is not None:
            self._hooks.notify(hook_name, session_id=self._session_id, **kwargs)
