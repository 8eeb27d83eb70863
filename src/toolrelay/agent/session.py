"""Session wiring: one conversation, one loop, shared tools and plugins."""

from __future__ import annotations

import uuid
from collections.abc import Iterable

import httpx
from loguru import logger

from toolrelay.agent.loop import AgentLoop, CycleResult
from toolrelay.config import Settings, SettingsProvider, static_settings
from toolrelay.conversation import Conversation, Snapshot
from toolrelay.hook_runtime import HookRuntime, create_plugin_manager
from toolrelay.logging_utils import session_scope
from toolrelay.model_client import ModelClient, ModelClientProtocol
from toolrelay.prompt import build_system_prompt
from toolrelay.tools import ToolContext, ToolRegistry, register_builtin_tools


class AgentSession:
    """Owns the turn log of one chat session and the loop that writes it."""

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        model_client: ModelClientProtocol,
        settings_provider: SettingsProvider,
        hooks: HookRuntime | None = None,
        http: httpx.AsyncClient | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex[:12]
        self.registry = registry
        self.hooks = hooks or HookRuntime(create_plugin_manager())
        self.conversation = Conversation()
        self.conversation.subscribe(self._publish_snapshot)
        self._settings_provider = settings_provider
        self._model_client = model_client
        self._http = http
        self.loop = self._build_loop()

    @property
    def settings(self) -> Settings:
        return self._settings_provider()

    async def submit(self, text: str) -> CycleResult:
        with session_scope(self.id):
            return await self.loop.submit(text)

    def reset(self) -> None:
        """Start a fresh conversation; the previous log is left as it was."""
        if self.loop.busy:
            logger.warning("session.reset_ignored reason=busy")
            return
        self.conversation = Conversation()
        self.conversation.subscribe(self._publish_snapshot)
        self.loop = self._build_loop()
        self._publish_snapshot(self.conversation.snapshot())

    async def aclose(self) -> None:
        await self.hooks.drain()
        if self._http is not None:
            await self._http.aclose()

    def _build_loop(self) -> AgentLoop:
        return AgentLoop(
            conversation=self.conversation,
            registry=self.registry,
            model_client=self._model_client,
            settings_provider=self._settings_provider,
            system_prompt=lambda settings: build_system_prompt(settings, self.registry.names()),
            hooks=self.hooks,
            session_id=self.id,
        )

    def _publish_snapshot(self, turns: Snapshot) -> None:
        self.hooks.notify("toolrelay_snapshot", session_id=self.id, turns=turns)


def build_session(
    settings: Settings | SettingsProvider,
    *,
    plugins: Iterable[object] = (),
    http: httpx.AsyncClient | None = None,
    model_client: ModelClientProtocol | None = None,
    session_id: str | None = None,
) -> AgentSession:
    """Wire the builtin tools, the model client and presentation plugins."""
    settings_provider = static_settings(settings) if isinstance(settings, Settings) else settings
    client = http or httpx.AsyncClient(follow_redirects=True)

    registry = register_builtin_tools(ToolRegistry(), ToolContext(settings_provider=settings_provider, http=client))
    registry.freeze()

    hooks = HookRuntime(create_plugin_manager(*plugins))
    return AgentSession(
        registry=registry,
        model_client=model_client or ModelClient(settings_provider, client),
        settings_provider=settings_provider,
        hooks=hooks,
        http=client,
        session_id=session_id,
    )
