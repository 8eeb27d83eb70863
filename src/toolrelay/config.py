"""Configuration management for toolrelay."""

from __future__ import annotations

from collections.abc import Callable

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE = "https://aipipe.org/openrouter/v1"
DEFAULT_MODEL = "openai/gpt-4.1-nano"
DEFAULT_SEARCH_API_URL = "https://www.googleapis.com/customsearch/v1"
DEFAULT_WORKFLOW_BASE_URL = "https://aipipe.org/api"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLRELAY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Model endpoint
    api_key: str | None = Field(default=None, description="API key for the chat completions endpoint")
    api_base: str = Field(default=DEFAULT_API_BASE, description="Base URL of the chat completions endpoint")
    model: str = Field(default=DEFAULT_MODEL, description="Model identifier sent with every request")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    model_timeout_seconds: float = Field(default=60.0, gt=0, description="Timeout for one model call")

    # Agent loop
    max_iterations: int = Field(default=10, ge=1, description="Maximum model calls per user submission")
    system_prompt: str | None = Field(default=None, description="Extra instructions appended to the agent prompt")

    # Tools
    tool_timeout_seconds: float = Field(default=30.0, gt=0, description="Timeout for HTTP-backed tools")
    sandbox_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for the JavaScript sandbox")
    google_cse_key: str | None = Field(default=None, description="Google Custom Search API key")
    google_cse_cx: str | None = Field(default=None, description="Google Custom Search engine id")
    search_api_url: str = Field(default=DEFAULT_SEARCH_API_URL, description="Custom Search endpoint")
    aipipe_key: str | None = Field(default=None, description="AI Pipe API key for workflow calls")
    workflow_base_url: str = Field(default=DEFAULT_WORKFLOW_BASE_URL, description="AI Pipe workflow base URL")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")


SettingsProvider = Callable[[], Settings]


def get_settings(**overrides: object) -> Settings:
    """Get application settings.

    Values come from ``TOOLRELAY_*`` environment variables and an optional
    ``.env`` file; keyword overrides win over both.
    """
    return Settings(**overrides)  # type: ignore[arg-type]


def static_settings(settings: Settings) -> SettingsProvider:
    """Wrap a fixed settings object as a provider."""

    def _provider() -> Settings:
        return settings

    return _provider
