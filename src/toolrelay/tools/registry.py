"""Tool registry: definitions, registration, and lookup."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeAlias, TypeVar

from pydantic import BaseModel

from toolrelay.errors import DuplicateToolError, RegistryFrozenError, UnknownToolError

ToolHandler: TypeAlias = Callable[[dict[str, Any]], Awaitable[str]]

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class ToolDefinition:
    """A tool exposed to the model, paired with its async handler.

    The handler receives the decoded argument mapping and returns the
    serialized text the model will see.
    """

    name: str
    description: str
    handler: ToolHandler
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    async def invoke(self, arguments: dict[str, Any]) -> str:
        return await self.handler(arguments)

    @classmethod
    def from_model(
        cls,
        model: type[M],
        handler: Callable[[M], Awaitable[str]],
        *,
        name: str,
        description: str | None = None,
    ) -> ToolDefinition:
        """Build a definition whose schema and validation come from a pydantic model."""

        async def _handler(arguments: dict[str, Any]) -> str:
            params = model.model_validate(arguments)
            return await handler(params)

        schema = model.model_json_schema()
        schema.pop("title", None)
        schema.pop("description", None)
        return cls(
            name=name,
            description=description or (model.__doc__ or "").strip(),
            handler=_handler,
            parameters=schema,
        )


class ToolRegistry:
    """Name-to-definition mapping populated once at startup.

    Registration order is preserved. After ``freeze()`` the registry is
    read-only and safe to resolve from any number of concurrent tasks.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._frozen = False

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, definition: ToolDefinition) -> ToolDefinition:
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register {definition.name}: registry is frozen")
        if definition.name in self._tools:
            raise DuplicateToolError(definition.name)
        self._tools[definition.name] = definition
        return definition

    def freeze(self) -> None:
        self._frozen = True

    def has(self, name: str) -> bool:
        return name in self._tools

    def resolve(self, name: str) -> ToolDefinition:
        definition = self._tools.get(name)
        if definition is None:
            raise UnknownToolError(name)
        return definition

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def schemas(self) -> list[dict[str, Any]]:
        return [definition.schema() for definition in self._tools.values()]
