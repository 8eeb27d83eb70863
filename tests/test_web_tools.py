from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from toolrelay.config import Settings, static_settings
from toolrelay.tools.factories import ToolContext, create_google_search_tool, create_workflow_tool
from toolrelay.tools.factories.web import CONFIG_REQUIRED_MESSAGE, NO_RESULTS_MESSAGE
from toolrelay.tools.factories.workflow import SUGGESTION_WITH_KEY, SUGGESTION_WITHOUT_KEY

Handler = Callable[[httpx.Request], httpx.Response]


class _Recorder:
    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def _context(settings: Settings, recorder: _Recorder) -> ToolContext:
    http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return ToolContext(settings_provider=static_settings(settings), http=http)


def _search_settings(**overrides: object) -> Settings:
    values: dict[str, object] = {"google_cse_key": "g-key", "google_cse_cx": "g-cx"}
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_search_without_credentials_skips_network() -> None:
    recorder = _Recorder(lambda request: httpx.Response(200, json={}))
    tool = create_google_search_tool(_context(Settings(), recorder))

    output = json.loads(await tool.invoke({"query": "weather"}))

    assert output == {"error": CONFIG_REQUIRED_MESSAGE, "configRequired": True}
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_search_sends_credentials_and_truncates_results() -> None:
    items = [
        {
            "title": f"Result {i}",
            "link": f"https://example.com/{i}",
            "snippet": f"snippet {i}",
            "displayLink": "example.com",
            "formattedUrl": f"https://example.com/{i}",
        }
        for i in range(8)
    ]
    body = {"items": items, "searchInformation": {"totalResults": "1234", "searchTime": 0.21}}
    recorder = _Recorder(lambda request: httpx.Response(200, json=body))
    tool = create_google_search_tool(_context(_search_settings(), recorder))

    output = json.loads(await tool.invoke({"query": "python asyncio"}))

    sent = recorder.requests[0]
    assert sent.url.params["key"] == "g-key"
    assert sent.url.params["cx"] == "g-cx"
    assert sent.url.params["q"] == "python asyncio"
    assert output["success"] is True
    assert output["totalResults"] == 1234
    assert output["searchTime"] == 0.21
    assert [result["rank"] for result in output["results"]] == [1, 2, 3, 4, 5]
    assert output["results"][0]["title"] == "Result 0"


@pytest.mark.asyncio
async def test_search_with_no_items() -> None:
    body = {"searchInformation": {"totalResults": "0", "searchTime": 0.1}}
    recorder = _Recorder(lambda request: httpx.Response(200, json=body))
    tool = create_google_search_tool(_context(_search_settings(), recorder))

    output = json.loads(await tool.invoke({"query": "zzzz"}))

    assert output["success"] is True
    assert output["totalResults"] == 0
    assert output["message"] == NO_RESULTS_MESSAGE


@pytest.mark.asyncio
async def test_search_http_error_is_reported_as_data() -> None:
    body = {"error": {"code": 403, "message": "Daily limit exceeded"}}
    recorder = _Recorder(lambda request: httpx.Response(403, json=body))
    tool = create_google_search_tool(_context(_search_settings(), recorder))

    output = json.loads(await tool.invoke({"query": "anything"}))

    assert output["success"] is False
    assert output["error"] == "Google API error: 403 - Daily limit exceeded"
    assert output["query"] == "anything"
    assert "timestamp" in output


@pytest.mark.asyncio
async def test_search_transport_failure_is_reported_as_data() -> None:
    def _fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    tool = create_google_search_tool(_context(_search_settings(), _Recorder(_fail)))

    output = json.loads(await tool.invoke({"query": "anything"}))

    assert output["success"] is False
    assert "connection refused" in output["error"]


@pytest.mark.asyncio
async def test_workflow_posts_payload_with_bearer_key() -> None:
    recorder = _Recorder(lambda request: httpx.Response(200, json={"summary": "short"}))
    settings = Settings(aipipe_key="pipe-key", workflow_base_url="https://pipe.test/api/")
    tool = create_workflow_tool(_context(settings, recorder))

    output = json.loads(await tool.invoke({"workflow": "summarize", "payload": {"text": "long text", "lang": "en"}}))

    sent = recorder.requests[0]
    assert str(sent.url) == "https://pipe.test/api/summarize"
    assert sent.headers["Authorization"] == "Bearer pipe-key"
    assert json.loads(sent.content) == {"text": "long text", "lang": "en"}
    assert output["success"] is True
    assert output["workflow"] == "summarize"
    assert output["result"] == {"summary": "short"}


@pytest.mark.asyncio
async def test_workflow_without_key_sends_no_authorization() -> None:
    recorder = _Recorder(lambda request: httpx.Response(200, json={"ok": True}))
    tool = create_workflow_tool(_context(Settings(), recorder))

    await tool.invoke({"workflow": "sentiment", "payload": {"text": "great"}})

    assert "Authorization" not in recorder.requests[0].headers


@pytest.mark.asyncio
async def test_workflow_error_status_includes_suggestion() -> None:
    recorder = _Recorder(lambda request: httpx.Response(404, text="no such workflow"))

    without_key = create_workflow_tool(_context(Settings(), recorder))
    with_key = create_workflow_tool(_context(Settings(aipipe_key="k"), recorder))

    first = json.loads(await without_key.invoke({"workflow": "missing", "payload": {"text": "x"}}))
    second = json.loads(await with_key.invoke({"workflow": "missing", "payload": {"text": "x"}}))

    assert first["success"] is False
    assert first["error"] == "AI Pipe API error: 404 Not Found - no such workflow"
    assert first["payload"] == {"text": "x"}
    assert first["suggestion"] == SUGGESTION_WITHOUT_KEY
    assert second["suggestion"] == SUGGESTION_WITH_KEY


@pytest.mark.asyncio
async def test_workflow_requires_payload_object() -> None:
    recorder = _Recorder(lambda request: httpx.Response(200, json={}))
    tool = create_workflow_tool(_context(Settings(), recorder))

    with pytest.raises(ValueError):
        await tool.invoke({"workflow": "summarize"})
    assert recorder.requests == []
