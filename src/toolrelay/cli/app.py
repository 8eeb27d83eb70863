"""Typer application for toolrelay."""

import asyncio
from typing import Optional

import httpx
import typer
from rich.table import Table

from toolrelay.agent import AgentSession, CycleStatus, build_session
from toolrelay.cli.render import Renderer, create_cli_renderer
from toolrelay.config import Settings, get_settings, static_settings
from toolrelay.logging_utils import configure_logging
from toolrelay.tools import ToolContext, ToolRegistry, register_builtin_tools

app = typer.Typer(
    name="toolrelay",
    help="Multi-tool reasoning agent: search, AI workflows and sandboxed JavaScript.",
    add_completion=False,
    rich_markup_mode="rich",
)

EXIT_COMMANDS = {"quit", "exit", "q"}


def _load_settings(model: Optional[str]) -> Settings:
    overrides: dict[str, object] = {}
    if model:
        overrides["model"] = model
    return get_settings(**overrides)


def _setup_logging(settings: Settings, verbose: bool) -> None:
    configure_logging(profile="chat", level=settings.log_level if verbose else "WARNING")


@app.callback(invoke_without_command=True)
def main_callback(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        chat(model=None, verbose=False)


@app.command()
def chat(
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model identifier override"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show runtime logs"),
) -> None:
    """Start an interactive session."""
    settings = _load_settings(model)
    _setup_logging(settings, verbose)
    renderer = create_cli_renderer()
    if not settings.api_key:
        renderer.api_key_error()
        raise typer.Exit(1)
    asyncio.run(_chat_loop(settings, renderer))


async def _chat_loop(settings: Settings, renderer: Renderer) -> None:
    session = build_session(settings, plugins=[renderer])
    renderer.welcome()
    renderer.usage_info(model=settings.model, tools=session.registry.names())
    try:
        while True:
            try:
                user_input = (await renderer.get_user_input()).strip()
            except (EOFError, KeyboardInterrupt):
                break
            if not user_input:
                continue
            handled = _handle_special_command(user_input, session, renderer)
            if handled:
                break
            if handled is False:
                continue
            await session.submit(user_input)
    finally:
        await session.aclose()
    renderer.info("[dim]Goodbye.[/dim]")


def _handle_special_command(user_input: str, session: AgentSession, renderer: Renderer) -> Optional[bool]:
    """Return True to end the session, False when handled, None for normal input."""
    cmd = user_input.lower()
    if cmd in EXIT_COMMANDS:
        return True
    if cmd == "reset":
        session.reset()
        renderer.info("Conversation cleared.")
        return False
    if cmd == "debug":
        renderer.toggle_debug()
        return False
    return None


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to answer"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model identifier override"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show runtime logs"),
) -> None:
    """Run a single cycle and print the transcript."""
    settings = _load_settings(model)
    _setup_logging(settings, verbose)
    renderer = create_cli_renderer()
    if not settings.api_key:
        renderer.api_key_error()
        raise typer.Exit(1)

    status = asyncio.run(_ask_once(settings, renderer, question))
    if status is not CycleStatus.ANSWERED:
        raise typer.Exit(1)


async def _ask_once(settings: Settings, renderer: Renderer, question: str) -> CycleStatus:
    session = build_session(settings, plugins=[renderer])
    try:
        result = await session.submit(question)
    finally:
        await session.aclose()
    return result.status


@app.command()
def tools() -> None:
    """List the tools offered to the model."""
    settings = get_settings()
    renderer = create_cli_renderer()
    registry = asyncio.run(_builtin_registry(settings))

    table = Table(title="Tools")
    table.add_column("Name", style="green", no_wrap=True)
    table.add_column("Description")
    table.add_column("Parameters", style="dim")
    for definition in registry.definitions():
        required = definition.parameters.get("required", [])
        table.add_row(definition.name, definition.description, ", ".join(required))
    renderer.console.print(table)


async def _builtin_registry(settings: Settings) -> ToolRegistry:
    async with httpx.AsyncClient() as http:
        return register_builtin_tools(ToolRegistry(), ToolContext(settings_provider=static_settings(settings), http=http))
