"""Terminal presentation sink for toolrelay."""

from __future__ import annotations

import json
import threading
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.markup import escape

from toolrelay.agent.loop import CycleResult, CycleStatus
from toolrelay.conversation import (
    ERROR_KIND_MAX_ITERATIONS,
    AssistantTurn,
    ErrorTurn,
    Snapshot,
    SystemTurn,
    ToolCallAnnouncement,
    ToolResultTurn,
    Turn,
    UserTurn,
)
from toolrelay.hookspecs import hookimpl


class Renderer:
    """Prints each newly appended turn; registered as a pluggy plugin."""

    def __init__(self, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._show_debug: bool = False
        self._prompt_session: PromptSession[str] | None = None
        self._print_lock = threading.Lock()
        self._rendered = 0

    def toggle_debug(self) -> None:
        """Toggle debug mode to show/hide step status and wire-only results."""
        self._show_debug = not self._show_debug
        status = "enabled" if self._show_debug else "disabled"
        self._print(f"[dim]Debug mode {status}[/dim]")

    @property
    def show_debug(self) -> bool:
        return self._show_debug

    # Hooks

    @hookimpl
    def toolrelay_snapshot(self, turns: Snapshot) -> None:
        if len(turns) < self._rendered:
            self._rendered = 0
        for turn in turns[self._rendered :]:
            self.render_turn(turn)
        self._rendered = len(turns)

    @hookimpl
    def toolrelay_step(self, step: int, max_steps: int) -> None:
        if self._show_debug:
            self.debug_message(f"Processing step {step}/{max_steps}...")

    @hookimpl
    def toolrelay_cycle_end(self, result: CycleResult) -> None:
        if result.status is CycleStatus.ANSWERED:
            if self._show_debug:
                self.debug_message("Task completed successfully!")
        elif result.status is CycleStatus.MAX_ITERATIONS:
            self.info("[yellow]Agent reached maximum iteration limit.[/yellow]")

    # Rendering

    def render_turn(self, turn: Turn) -> None:
        match turn:
            case SystemTurn():
                if self._show_debug:
                    self.debug_message(f"System: {turn.text}")
            case UserTurn():
                self.user_message(turn.text)
            case AssistantTurn():
                self.assistant_message(_assistant_text(turn))
            case ToolCallAnnouncement():
                self.tool_call(turn)
            case ToolResultTurn():
                if turn.presentation_only:
                    self.tool_result(turn)
                elif self._show_debug:
                    self.debug_message(f"sent result {turn.request_id} to model")
            case ErrorTurn():
                if turn.kind == ERROR_KIND_MAX_ITERATIONS:
                    self._print(f"[bold yellow]Warning:[/bold yellow] {escape(turn.text)}")
                else:
                    self.error(turn.text)

    def tool_call(self, turn: ToolCallAnnouncement) -> None:
        header = f"Calling tool: {turn.tool_name} ({turn.index}/{turn.total})"
        self._print(f"[bold blue]{escape(header)}[/bold blue]")
        self._print(escape(_pretty(turn.arguments)))

    def tool_result(self, turn: ToolResultTurn) -> None:
        style = "red" if turn.is_error else "green"
        self._print(f"[bold {style}]Tool result: {escape(turn.tool_name)}[/bold {style}]")
        self._print(escape(_pretty(turn.output_text)))

    def info(self, message: str) -> None:
        self._print(message)

    def error(self, message: str) -> None:
        self._print(f"[bold red]Error:[/bold red] {escape(message)}")

    def welcome(self, message: str = "[bold blue]toolrelay[/bold blue] - multi-tool reasoning agent") -> None:
        self._print(message)

    def usage_info(self, model: str = "", tools: list[str] | None = None) -> None:
        if model:
            self._print(f"[bold]Model:[/bold] [magenta]{escape(model)}[/magenta]")
        if tools:
            self._print(f"[bold]Available tools:[/bold] [green]{escape(', '.join(tools))}[/green]")
        self._print("[dim]Type 'reset' to clear the conversation, 'debug' to toggle traces, 'exit' to quit.[/dim]")

    def user_message(self, message: str) -> None:
        self._print(f"[bold cyan]You:[/bold cyan] {escape(message)}")

    def assistant_message(self, message: str) -> None:
        self._print(f"[bold yellow]Assistant:[/bold yellow] {escape(message)}")

    def debug_message(self, message: str) -> None:
        self._print(f"[dim]{escape(message)}[/dim]")

    async def get_user_input(self) -> str:
        """Prompt user for input."""
        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        with patch_stdout(raw=True):
            return await self._prompt_session.prompt_async("$ ")

    def api_key_error(self) -> None:
        self.error("API key not configured. Set TOOLRELAY_API_KEY in your environment or .env file.")

    def _print(self, message: str) -> None:
        with self._print_lock:
            self.console.print(message)


def _assistant_text(turn: AssistantTurn) -> str:
    if turn.text:
        return turn.text
    if turn.tool_requests:
        return f"Preparing to use {len(turn.tool_requests)} tool(s)..."
    return "(empty response)"


def _pretty(value: Any) -> str:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return value
    return json.dumps(value, indent=2, ensure_ascii=False)


def create_cli_renderer(console: Console | None = None) -> Renderer:
    """Create and return a Renderer instance."""
    return Renderer(console)
