"""Application-level exception types for toolrelay."""

from __future__ import annotations


class ToolRelayError(Exception):
    """Base exception for toolrelay."""


class ConfigurationError(ToolRelayError):
    """Base exception for configuration and startup validation errors."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when an API key is required but missing."""


class RegistryError(ToolRelayError):
    """Base exception for tool registry misuse."""


class DuplicateToolError(RegistryError):
    """Raised when a tool name is registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool already registered: {name}")
        self.name = name


class UnknownToolError(RegistryError):
    """Raised when a tool name does not resolve to a registered tool."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class RegistryFrozenError(RegistryError):
    """Raised when registering after the registry has been frozen."""


class ToolArgumentsError(ToolRelayError):
    """Raised when tool call arguments are not a JSON object."""


class ModelCallError(ToolRelayError):
    """Raised when the model endpoint cannot produce an assistant message."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedModelResponseError(ModelCallError):
    """Raised when the model endpoint answers with an unexpected body."""


class ConversationInvariantError(ToolRelayError):
    """Raised when the wire view is not a valid model conversation."""


class CycleInProgressError(ToolRelayError):
    """Raised when a submission arrives while another cycle is running."""
