"""Shared tool input models and context helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from toolrelay.config import Settings, SettingsProvider

USER_AGENT = "toolrelay/0.1"


@dataclass(frozen=True)
class ToolContext:
    """What builtin tools need from the host: current settings and an HTTP client."""

    settings_provider: SettingsProvider
    http: httpx.AsyncClient

    @property
    def settings(self) -> Settings:
        return self.settings_provider()


class SearchInput(BaseModel):
    """Get snippets of information from a Google search query."""

    query: str = Field(..., description="The search query to send to Google.")


class WorkflowPayload(BaseModel):
    """The JSON payload to send to the workflow endpoint."""

    model_config = ConfigDict(extra="allow")

    text: str | None = Field(default=None, description="Text content to process")
    prompt: str | None = Field(default=None, description="Additional instructions for the workflow")

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class WorkflowInput(BaseModel):
    """Execute a serverless AI workflow via the AI Pipe proxy API."""

    workflow: str = Field(
        ...,
        description="The AI Pipe workflow name (e.g., 'summarize', 'sentiment', 'expand-content')",
    )
    payload: WorkflowPayload = Field(..., description="The JSON payload to send to the workflow endpoint.")


class JavaScriptInput(BaseModel):
    """Execute sandboxed JavaScript code. Cannot access DOM or window."""

    code: str = Field(..., description="A string of JavaScript code to be executed. Must return a value.")


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
