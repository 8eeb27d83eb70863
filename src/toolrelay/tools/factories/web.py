"""Web search tool factory."""

from __future__ import annotations

import json
from typing import Any

import httpx
from loguru import logger

from toolrelay.tools.registry import ToolDefinition

from .shared import USER_AGENT, SearchInput, ToolContext, utc_timestamp

SEARCH_TOOL_NAME = "google_search"
MAX_SEARCH_RESULTS = 5
CONFIG_REQUIRED_MESSAGE = "Google Search API Key or CX ID is missing. Please configure them in the settings."
NO_RESULTS_MESSAGE = "No search results found for this query."


def create_google_search_tool(context: ToolContext) -> ToolDefinition:
    """Create a web search tool backed by the Google Custom Search API."""

    async def _handler(params: SearchInput) -> str:
        settings = context.settings
        if not settings.google_cse_key or not settings.google_cse_cx:
            return json.dumps({"error": CONFIG_REQUIRED_MESSAGE, "configRequired": True})

        query = params.query
        try:
            response = await context.http.get(
                settings.search_api_url,
                params={"key": settings.google_cse_key, "cx": settings.google_cse_cx, "q": query},
                headers={"User-Agent": USER_AGENT},
                timeout=settings.tool_timeout_seconds,
            )
            if not response.is_success:
                return _failure(query, _describe_http_error(response))
            data = response.json()
        except httpx.HTTPError as exc:
            logger.warning("search.request_failed query={!r} error={}", query, exc)
            return _failure(query, str(exc) or type(exc).__name__)
        except ValueError as exc:
            return _failure(query, f"invalid json response: {exc!s}")

        return _format_search_response(query, data)

    return ToolDefinition.from_model(
        SearchInput,
        _handler,
        name=SEARCH_TOOL_NAME,
        description="Get snippets of information from a Google search query.",
    )


def _format_search_response(query: str, data: dict[str, Any]) -> str:
    info = data.get("searchInformation") or {}
    items = data.get("items") or []
    if not items:
        return json.dumps(
            {
                "success": True,
                "query": query,
                "totalResults": 0,
                "message": NO_RESULTS_MESSAGE,
                "searchTime": info.get("searchTime"),
            }
        )

    results = [
        {
            "rank": rank,
            "title": item.get("title"),
            "link": item.get("link"),
            "snippet": item.get("snippet"),
            "displayLink": item.get("displayLink"),
            "formattedUrl": item.get("formattedUrl"),
        }
        for rank, item in enumerate(items[:MAX_SEARCH_RESULTS], start=1)
    ]
    return json.dumps(
        {
            "success": True,
            "query": query,
            "totalResults": _parse_total(info.get("totalResults")),
            "searchTime": info.get("searchTime"),
            "results": results,
        },
        indent=2,
        ensure_ascii=False,
    )


def _describe_http_error(response: httpx.Response) -> str:
    message = response.reason_phrase
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message") or message
    return f"Google API error: {response.status_code} - {message}"


def _failure(query: str, error: str) -> str:
    return json.dumps({"success": False, "error": error, "query": query, "timestamp": utc_timestamp()})


def _parse_total(raw: object) -> int:
    try:
        return int(str(raw or 0))
    except ValueError:
        return 0
