from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from toolrelay.conversation import ToolCallAnnouncement, ToolRequest, ToolResultTurn, Turn
from toolrelay.tools.executor import ToolExecutor, ToolOutcome
from toolrelay.tools.registry import ToolDefinition, ToolRegistry


def _registry(**handlers: Any) -> ToolRegistry:
    registry = ToolRegistry()
    for name, handler in handlers.items():
        registry.register(ToolDefinition(name=name, description=name, handler=handler))
    registry.freeze()
    return registry


async def _echo(arguments: dict[str, Any]) -> str:
    return json.dumps(arguments)


async def _boom(arguments: dict[str, Any]) -> str:
    raise RuntimeError("handler exploded")


def test_outcome_failure_serializes_as_error_object() -> None:
    assert ToolOutcome.failure("nope").to_output() == '{"error": "nope"}'
    assert ToolOutcome.success("plain").to_output() == "plain"


@pytest.mark.asyncio
async def test_every_request_gets_announcement_and_result_pair() -> None:
    executor = ToolExecutor(_registry(echo=_echo))
    requests = [ToolRequest(id=f"c{i}", name="echo", arguments=json.dumps({"n": i})) for i in range(3)]
    emitted: list[Turn] = []

    results = await executor.run(requests, emitted.append)

    assert [result.request_id for result in results] == ["c0", "c1", "c2"]
    assert all(not result.presentation_only for result in results)
    announcements = [turn for turn in emitted if isinstance(turn, ToolCallAnnouncement)]
    shown = [turn for turn in emitted if isinstance(turn, ToolResultTurn)]
    assert {turn.request_id for turn in announcements} == {"c0", "c1", "c2"}
    assert [(turn.index, turn.total) for turn in announcements] == [(1, 3), (2, 3), (3, 3)]
    assert all(turn.presentation_only for turn in shown)
    assert {turn.request_id for turn in shown} == {"c0", "c1", "c2"}
    for result in results:
        mirror = next(turn for turn in shown if turn.request_id == result.request_id)
        assert mirror.output_text == result.output_text


@pytest.mark.asyncio
async def test_announcement_precedes_its_result() -> None:
    executor = ToolExecutor(_registry(echo=_echo))
    emitted: list[Turn] = []

    await executor.run([ToolRequest(id="a", name="echo"), ToolRequest(id="b", name="echo")], emitted.append)

    for request_id in ("a", "b"):
        positions = [index for index, turn in enumerate(emitted) if getattr(turn, "request_id", None) == request_id]
        assert isinstance(emitted[positions[0]], ToolCallAnnouncement)
        assert isinstance(emitted[positions[1]], ToolResultTurn)


@pytest.mark.asyncio
async def test_failing_handler_does_not_affect_siblings() -> None:
    executor = ToolExecutor(_registry(echo=_echo, boom=_boom))
    requests = [
        ToolRequest(id="ok", name="echo", arguments='{"x": 1}'),
        ToolRequest(id="bad", name="boom"),
    ]

    results = await executor.run(requests, lambda _turn: None)

    by_id = {result.request_id: result for result in results}
    assert json.loads(by_id["ok"].output_text) == {"x": 1}
    assert not by_id["ok"].is_error
    assert json.loads(by_id["bad"].output_text) == {"error": "handler exploded"}
    assert by_id["bad"].is_error


@pytest.mark.asyncio
async def test_unknown_tool_becomes_error_result() -> None:
    executor = ToolExecutor(_registry())

    outcome = await executor.execute(ToolRequest(id="x", name="does_not_exist"))

    assert not outcome.ok
    assert outcome.to_output() == '{"error": "Unknown tool: does_not_exist"}'


@pytest.mark.asyncio
async def test_malformed_arguments_become_error_result() -> None:
    called: list[dict[str, Any]] = []

    async def _record(arguments: dict[str, Any]) -> str:
        called.append(arguments)
        return "ok"

    executor = ToolExecutor(_registry(record=_record))
    emitted: list[Turn] = []

    results = await executor.run([ToolRequest(id="m", name="record", arguments="{not json")], emitted.append)

    assert called == []
    assert results[0].is_error
    assert "Invalid JSON arguments" in json.loads(results[0].output_text)["error"]
    assert emitted[0].arguments == "{not json"


@pytest.mark.asyncio
async def test_non_string_output_is_serialized() -> None:
    async def _structured(arguments: dict[str, Any]) -> Any:
        return {"value": 42}

    executor = ToolExecutor(_registry(structured=_structured))

    outcome = await executor.execute(ToolRequest(id="s", name="structured"))

    assert outcome.ok
    assert json.loads(outcome.text) == {"value": 42}


@pytest.mark.asyncio
async def test_slow_tool_does_not_block_siblings() -> None:
    release = asyncio.Event()

    async def _slow(arguments: dict[str, Any]) -> str:
        await release.wait()
        return "slow"

    async def _fast(arguments: dict[str, Any]) -> str:
        return "fast"

    executor = ToolExecutor(_registry(slow=_slow, fast=_fast))
    emitted: list[Turn] = []

    def _emit(turn: Turn) -> None:
        emitted.append(turn)
        if isinstance(turn, ToolResultTurn) and turn.request_id == "f":
            release.set()

    results = await asyncio.wait_for(
        executor.run([ToolRequest(id="s", name="slow"), ToolRequest(id="f", name="fast")], _emit),
        timeout=5,
    )

    shown = [turn.request_id for turn in emitted if isinstance(turn, ToolResultTurn)]
    assert shown == ["f", "s"]
    assert [result.request_id for result in results] == ["s", "f"]
    assert [result.output_text for result in results] == ["slow", "fast"]


@pytest.mark.asyncio
async def test_announcement_carries_raw_argument_text() -> None:
    executor = ToolExecutor(_registry(echo=_echo))
    raw = '{"query": "weather", "limit": 3}'
    emitted: list[Turn] = []

    await executor.run([ToolRequest(id="a1", name="echo", arguments=raw)], emitted.append)

    announcement = emitted[0]
    assert isinstance(announcement, ToolCallAnnouncement)
    assert announcement.arguments == raw
    hash(announcement)
