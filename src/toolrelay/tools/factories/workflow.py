"""AI Pipe workflow tool factory."""

from __future__ import annotations

import json
from typing import Any

import httpx
from loguru import logger

from toolrelay.tools.registry import ToolDefinition

from .shared import USER_AGENT, ToolContext, WorkflowInput, utc_timestamp

WORKFLOW_TOOL_NAME = "aipipe_workflow"
SUGGESTION_WITH_KEY = (
    "Check if the workflow name is correct and the payload format is valid. "
    "Available workflows might include: 'summarize', 'sentiment', 'expand-content'."
)
SUGGESTION_WITHOUT_KEY = "Consider adding an AI Pipe API key for authenticated access."


def create_workflow_tool(context: ToolContext) -> ToolDefinition:
    """Create a tool that posts a payload to a named AI Pipe workflow."""

    async def _handler(params: WorkflowInput) -> str:
        settings = context.settings
        api_key = settings.aipipe_key
        payload = params.payload.to_body()

        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        url = f"{settings.workflow_base_url.rstrip('/')}/{params.workflow.strip('/')}"
        try:
            response = await context.http.post(
                url,
                json=payload,
                headers=headers,
                timeout=settings.tool_timeout_seconds,
            )
            if not response.is_success:
                error = f"AI Pipe API error: {response.status_code} {response.reason_phrase} - {response.text}"
                return _failure(params.workflow, payload, error, has_key=bool(api_key))
            result = response.json()
        except httpx.HTTPError as exc:
            logger.warning("workflow.request_failed workflow={} error={}", params.workflow, exc)
            return _failure(params.workflow, payload, str(exc) or type(exc).__name__, has_key=bool(api_key))
        except ValueError as exc:
            return _failure(params.workflow, payload, f"invalid json response: {exc!s}", has_key=bool(api_key))

        return json.dumps(
            {
                "success": True,
                "workflow": params.workflow,
                "payload": payload,
                "result": result,
                "timestamp": utc_timestamp(),
            },
            indent=2,
            ensure_ascii=False,
        )

    return ToolDefinition.from_model(
        WorkflowInput,
        _handler,
        name=WORKFLOW_TOOL_NAME,
        description=(
            "Executes a serverless AI workflow via the AI Pipe proxy API. "
            "Use for text processing, analysis, summarization, etc."
        ),
    )


def _failure(workflow: str, payload: dict[str, Any], error: str, *, has_key: bool) -> str:
    return json.dumps(
        {
            "success": False,
            "workflow": workflow,
            "payload": payload,
            "error": error,
            "timestamp": utc_timestamp(),
            "suggestion": SUGGESTION_WITH_KEY if has_key else SUGGESTION_WITHOUT_KEY,
        },
        ensure_ascii=False,
    )
