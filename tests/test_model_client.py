from __future__ import annotations

import json

import httpx
import pytest

from toolrelay.config import Settings, static_settings
from toolrelay.errors import ApiKeyNotConfiguredError, MalformedModelResponseError, ModelCallError
from toolrelay.model_client import ModelClient, parse_assistant_message

SCHEMA = {"type": "function", "function": {"name": "noop", "description": "", "parameters": {"type": "object"}}}


def _client(settings: Settings, handler) -> tuple[ModelClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(_record))
    return ModelClient(static_settings(settings), http), seen


def _completion(message: dict) -> dict:
    return {"id": "cmpl-1", "choices": [{"index": 0, "message": message, "finish_reason": "stop"}]}


@pytest.mark.asyncio
async def test_request_shape(settings: Settings) -> None:
    client, seen = _client(settings, lambda request: httpx.Response(200, json=_completion({"content": "hi"})))
    messages = [{"role": "user", "content": "hello"}]

    turn = await client.complete(messages, [SCHEMA])

    request = seen[0]
    body = json.loads(request.content)
    assert str(request.url) == "https://llm.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert body["model"] == "test/model"
    assert body["messages"] == messages
    assert body["tools"] == [SCHEMA]
    assert body["tool_choice"] == "auto"
    assert turn.text == "hi"
    assert not turn.has_tool_requests


@pytest.mark.asyncio
async def test_tools_omitted_when_empty(settings: Settings) -> None:
    client, seen = _client(settings, lambda request: httpx.Response(200, json=_completion({"content": "ok"})))

    await client.complete([{"role": "user", "content": "x"}], [])

    assert "tools" not in json.loads(seen[0].content)


@pytest.mark.asyncio
async def test_error_status_raises_with_body(settings: Settings) -> None:
    client, _ = _client(settings, lambda request: httpx.Response(500, text="upstream down"))

    with pytest.raises(ModelCallError) as exc_info:
        await client.complete([{"role": "user", "content": "x"}], [])

    assert exc_info.value.status_code == 500
    assert str(exc_info.value) == "API Error: 500 Internal Server Error\nupstream down"


@pytest.mark.asyncio
async def test_transport_error_is_wrapped(settings: Settings) -> None:
    def _fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client, _ = _client(settings, _fail)

    with pytest.raises(ModelCallError, match="timed out"):
        await client.complete([{"role": "user", "content": "x"}], [])


@pytest.mark.asyncio
async def test_non_json_body_is_malformed(settings: Settings) -> None:
    client, _ = _client(settings, lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(MalformedModelResponseError):
        await client.complete([{"role": "user", "content": "x"}], [])


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_network() -> None:
    client, seen = _client(Settings(), lambda request: httpx.Response(200, json={}))

    with pytest.raises(ApiKeyNotConfiguredError):
        await client.complete([{"role": "user", "content": "x"}], [])
    assert seen == []


def test_parse_tool_calls() -> None:
    turn = parse_assistant_message(
        _completion(
            {
                "content": None,
                "tool_calls": [
                    {"id": "call_a", "type": "function", "function": {"name": "google_search", "arguments": '{"query": "q"}'}},
                    {"type": "function", "function": {"name": "execute_javascript", "arguments": {"code": "return 1"}}},
                ],
            }
        )
    )

    assert turn.text is None
    assert [request.id for request in turn.tool_requests] == ["call_a", "call_1"]
    assert turn.tool_requests[0].parse_arguments() == {"query": "q"}
    assert turn.tool_requests[1].parse_arguments() == {"code": "return 1"}


def test_parse_keeps_text_alongside_tool_calls() -> None:
    turn = parse_assistant_message(
        _completion(
            {
                "content": "Let me search.",
                "tool_calls": [{"id": "c", "function": {"name": "google_search", "arguments": "{}"}}],
            }
        )
    )

    assert turn.text == "Let me search."
    assert turn.has_tool_requests


def test_parse_empty_message_becomes_empty_text() -> None:
    assert parse_assistant_message(_completion({"content": None})).text == ""


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"choices": []},
        {"choices": [{"message": "text"}]},
        _completion({"content": ["parts"]}),
        _completion({"tool_calls": [{"id": "c"}]}),
    ],
)
def test_parse_rejects_unexpected_shapes(payload: dict) -> None:
    with pytest.raises(MalformedModelResponseError):
        parse_assistant_message(payload)
