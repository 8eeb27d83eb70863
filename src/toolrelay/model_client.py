"""Chat-completions client for OpenAI-compatible endpoints."""

from __future__ import annotations

import json
from typing import Any, Protocol

import httpx
from loguru import logger

from toolrelay.config import SettingsProvider
from toolrelay.conversation import AssistantTurn, ToolRequest
from toolrelay.errors import ApiKeyNotConfiguredError, MalformedModelResponseError, ModelCallError

API_KEY_NOT_CONFIGURED_ERROR = "API key not configured. Set TOOLRELAY_API_KEY in your environment or .env file."


class ModelClientProtocol(Protocol):
    async def complete(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> AssistantTurn: ...


class ModelClient:
    """Sends the wire view to ``<api_base>/chat/completions`` and parses one assistant message.

    Every failure (missing key, transport error, non-2xx status, unexpected
    body) is raised as a ``ModelCallError`` subclass; nothing is retried.
    """

    def __init__(self, settings_provider: SettingsProvider, http: httpx.AsyncClient) -> None:
        self._settings_provider = settings_provider
        self._http = http

    async def complete(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> AssistantTurn:
        settings = self._settings_provider()
        if not settings.api_key:
            raise ApiKeyNotConfiguredError(API_KEY_NOT_CONFIGURED_ERROR)

        body: dict[str, Any] = {
            "model": settings.model,
            "messages": messages,
            "tool_choice": "auto",
            "temperature": settings.temperature,
        }
        if tools:
            body["tools"] = tools

        url = f"{settings.api_base.rstrip('/')}/chat/completions"
        logger.info("model.call.start model={} messages={} tools={}", settings.model, len(messages), len(tools))
        try:
            response = await self._http.post(
                url,
                json=body,
                headers={"Authorization": f"Bearer {settings.api_key}"},
                timeout=settings.model_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise ModelCallError(f"Model request failed: {exc!s}") from exc

        if not response.is_success:
            raise ModelCallError(
                f"API Error: {response.status_code} {response.reason_phrase}\n{response.text}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedModelResponseError(f"Model response is not JSON: {exc!s}") from exc

        turn = parse_assistant_message(payload)
        logger.info("model.call.end model={} tool_requests={}", settings.model, len(turn.tool_requests))
        return turn


def parse_assistant_message(payload: Any) -> AssistantTurn:
    """Extract ``choices[0].message`` from a chat-completions response body."""
    try:
        message = payload["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedModelResponseError(f"Model response has no message: {exc!r}") from exc
    if not isinstance(message, dict):
        raise MalformedModelResponseError("Model message must be an object")

    requests: list[ToolRequest] = []
    for position, call in enumerate(message.get("tool_calls") or []):
        try:
            function = call["function"]
            name = function["name"]
        except (KeyError, TypeError) as exc:
            raise MalformedModelResponseError(f"Malformed tool call at index {position}: {exc!r}") from exc
        arguments = function.get("arguments")
        if arguments is None:
            arguments = "{}"
        elif not isinstance(arguments, str):
            # Some gateways send decoded arguments; keep the wire format textual.
            arguments = json.dumps(arguments, ensure_ascii=False)
        requests.append(ToolRequest(id=str(call.get("id") or f"call_{position}"), name=str(name), arguments=arguments))

    content = message.get("content")
    if content is not None and not isinstance(content, str):
        raise MalformedModelResponseError("Model message content must be text")
    if content is None and not requests:
        content = ""
    try:
        return AssistantTurn(text=content, tool_requests=tuple(requests))
    except ValueError as exc:
        raise MalformedModelResponseError(str(exc)) from exc
