"""Concurrent tool dispatch with per-call fault isolation."""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeAlias

from loguru import logger

from toolrelay.conversation import ToolCallAnnouncement, ToolRequest, ToolResultTurn, Turn
from toolrelay.errors import ToolArgumentsError, UnknownToolError
from toolrelay.tools.registry import ToolRegistry

TurnSink: TypeAlias = Callable[[Turn], None]


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    if len(text) <= width:
        return text
    available = width - len(placeholder)
    if available <= 0:
        return placeholder
    return text[:available] + placeholder


@dataclass(frozen=True)
class ToolOutcome:
    """Tagged result of one tool call: ``ok`` text or a failure message."""

    ok: bool
    text: str

    @classmethod
    def success(cls, text: str) -> ToolOutcome:
        return cls(ok=True, text=text)

    @classmethod
    def failure(cls, message: str) -> ToolOutcome:
        return cls(ok=False, text=message)

    def to_output(self) -> str:
        if self.ok:
            return self.text
        return json.dumps({"error": self.text}, ensure_ascii=False)


class ToolExecutor:
    """Runs every request of one assistant turn concurrently.

    Each request produces an announcement before it starts and a pair of
    result turns (presentation and wire) when it settles. Presentation turns
    are emitted in completion order; the returned wire turns follow request
    order. Failures never escape a single call.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    async def run(self, requests: Sequence[ToolRequest], emit: TurnSink) -> list[ToolResultTurn]:
        total = len(requests)
        calls = [self._run_one(request, index, total, emit) for index, request in enumerate(requests, start=1)]
        return list(await asyncio.gather(*calls))

    async def _run_one(self, request: ToolRequest, index: int, total: int, emit: TurnSink) -> ToolResultTurn:
        emit(
            ToolCallAnnouncement(
                request_id=request.id,
                tool_name=request.name,
                arguments=request.arguments,
                index=index,
                total=total,
            )
        )

        start = time.monotonic()
        outcome = await self.execute(request)
        logger.info(
            "tool.call.end name={} id={} ok={} duration={:.3f}ms",
            request.name,
            request.id,
            outcome.ok,
            (time.monotonic() - start) * 1000,
        )

        output = outcome.to_output()
        emit(
            ToolResultTurn(
                request_id=request.id,
                tool_name=request.name,
                output_text=output,
                presentation_only=True,
                is_error=not outcome.ok,
            )
        )
        return ToolResultTurn(
            request_id=request.id,
            tool_name=request.name,
            output_text=output,
            presentation_only=False,
            is_error=not outcome.ok,
        )

    async def execute(self, request: ToolRequest) -> ToolOutcome:
        """Resolve, decode and invoke one request; never raises ``Exception``."""
        try:
            definition = self._registry.resolve(request.name)
        except UnknownToolError as exc:
            logger.warning("tool.call.unknown name={} id={}", request.name, request.id)
            return ToolOutcome.failure(str(exc))

        try:
            arguments = request.parse_arguments()
        except ToolArgumentsError as exc:
            logger.warning("tool.call.bad_arguments name={} id={} error={}", request.name, request.id, exc)
            return ToolOutcome.failure(str(exc))

        self._log_tool_call(request, arguments)
        try:
            output = await definition.invoke(arguments)
        except Exception as exc:
            logger.opt(exception=True).warning("tool.call.error name={} id={}", request.name, request.id)
            return ToolOutcome.failure(str(exc) or type(exc).__name__)
        return ToolOutcome.success(output if isinstance(output, str) else json.dumps(output, ensure_ascii=False))

    @staticmethod
    def _log_tool_call(request: ToolRequest, arguments: dict[str, Any]) -> None:
        params: list[str] = []
        for key, value in arguments.items():
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            params.append(f"{key}={_shorten_text(rendered)}")
        logger.info("tool.call.start name={} id={} {{ {} }}", request.name, request.id, ", ".join(params))
