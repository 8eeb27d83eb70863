"""Hook execution runtime with per-plugin fault isolation."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any

import pluggy
from loguru import logger

from toolrelay.hookspecs import TOOLRELAY_HOOK_NAMESPACE, ToolRelayHookSpecs


def create_plugin_manager(*plugins: object) -> pluggy.PluginManager:
    manager = pluggy.PluginManager(TOOLRELAY_HOOK_NAMESPACE)
    manager.add_hookspecs(ToolRelayHookSpecs)
    for plugin in plugins:
        manager.register(plugin)
    return manager


class HookRuntime:
    """Fire-and-forget wrapper around pluggy hook execution.

    Implementations run synchronously in pluggy call order. An awaitable
    result is scheduled on the running loop and never awaited by the caller.
    A failing implementation is logged and reported through
    ``toolrelay_error`` without affecting the others.
    """

    def __init__(self, plugin_manager: pluggy.PluginManager) -> None:
        self._plugin_manager = plugin_manager
        self._pending: set[asyncio.Future[Any]] = set()

    def notify(self, hook_name: str, **kwargs: Any) -> None:
        for impl in self._iter_hookimpls(hook_name):
            call_kwargs = self._kwargs_for_impl(impl, kwargs)
            try:
                value = impl.function(**call_kwargs)
            except Exception as error:
                self._report(hook_name, impl, error)
                continue
            if inspect.isawaitable(value):
                self._schedule(hook_name, impl, value)

    def notify_error(self, *, stage: str, error: Exception) -> None:
        """Call toolrelay_error hooks, swallowing observer failures."""
        for impl in self._iter_hookimpls("toolrelay_error"):
            call_kwargs = self._kwargs_for_impl(impl, {"stage": stage, "error": error})
            try:
                value = impl.function(**call_kwargs)
            except Exception:
                logger.opt(exception=True).warning(
                    "hook.on_error_failed stage={} plugin={}",
                    stage,
                    impl.plugin_name or "<unknown>",
                )
                continue
            if inspect.isawaitable(value):
                self._schedule("toolrelay_error", impl, value, report=False)

    async def drain(self) -> None:
        """Wait for scheduled async hook results; used on shutdown and in tests."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _schedule(self, hook_name: str, impl: Any, awaitable: Any, *, report: bool = True) -> None:
        try:
            future = asyncio.ensure_future(awaitable)
        except RuntimeError:
            logger.warning("hook.async_not_supported hook={} plugin={}", hook_name, impl.plugin_name or "<unknown>")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        self._pending.add(future)

        def _done(task: asyncio.Future[Any]) -> None:
            self._pending.discard(task)
            if task.cancelled():
                return
            error = task.exception()
            if error is None:
                return
            if report and isinstance(error, Exception):
                self._report(hook_name, impl, error)
            else:
                logger.warning("hook.async_failed hook={} plugin={} error={}", hook_name, impl.plugin_name, error)

        future.add_done_callback(_done)

    def _report(self, hook_name: str, impl: Any, error: Exception) -> None:
        stage = f"{hook_name}:{impl.plugin_name or '<unknown>'}"
        logger.opt(exception=error).warning("hook.call_failed stage={}", stage)
        if hook_name != "toolrelay_error":
            self.notify_error(stage=stage, error=error)

    def _iter_hookimpls(self, hook_name: str) -> list[Any]:
        hook = getattr(self._plugin_manager.hook, hook_name, None)
        if hook is None or not hasattr(hook, "get_hookimpls"):
            return []
        return list(reversed(hook.get_hookimpls()))

    @staticmethod
    def _kwargs_for_impl(impl: Any, kwargs: dict[str, Any]) -> dict[str, Any]:
        return {name: kwargs[name] for name in impl.argnames if name in kwargs}
