#!/usr/bin/env python3
"""main.py

Terminal client for switchboard.
Holds one session, connects it to tool providers and chats through the turn
loop using the Rich library.
"""

from __future__ import annotations

# Standard Library
import sys
import asyncio
import logging
import argparse

# Third-Party Libraries
from dotenv import load_dotenv
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme
from rich.prompt import Prompt
from rich.console import Console
from rich.markdown import Markdown

# Local Modules
from switchboard.budget import ContextBudget
from switchboard.catalog import ProviderCatalog, default_catalog
from switchboard.config import Settings
from switchboard.errors import ProviderConnectionError
from switchboard.model_service import OllamaModelService
from switchboard.models import Message, Role
from switchboard.registry import ConnectionRegistry
from switchboard.turn_loop import TurnLoop, TurnOutcome

# Load environment variables from .env file
load_dotenv()

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "user": "bold blue",
        "assistant": "green",
        "tool": "magenta",
    }
)
console = Console(theme=custom_theme)

SYSTEM_PROMPT = (
    "You are a helpful assistant. Use the available tools when they help "
    "answer the user, and answer directly when they do not."
)


def display_help() -> None:
    """Display available commands and usage information."""
    help_text = """
**Available Commands:**

- `/help` - Show this help message
- `/providers` - List providers in the catalog
- `/connect <id>` - Connect this session to a provider
- `/disconnect <id>` - Disconnect a provider
- `/tools` - Show the tools offered to the model
- `/clear` - Clear conversation history
- `/quit` or `/exit` - Exit
- Any other text - Chat with the assistant
    """
    console.print(Panel(Markdown(help_text), title="Help", border_style="cyan"))


def display_providers(catalog: ProviderCatalog, registry: ConnectionRegistry, session_id: str) -> None:
    table = Table(title="Providers", border_style="cyan")
    table.add_column("id", style="bold")
    table.add_column("category")
    table.add_column("status")
    table.add_column("description")
    for spec in catalog.list():
        connected = registry.get(session_id, spec.id) is not None
        status = "[success]connected[/success]" if connected else ""
        if not connected and spec.missing_env():
            status = f"[warning]needs {', '.join(spec.missing_env())}[/warning]"
        table.add_row(spec.id, spec.category, status, spec.description)
    console.print(table)


def display_trace(outcome: TurnOutcome) -> None:
    """Show each tool call with its result status."""
    for call, result in zip(outcome.tool_calls, outcome.tool_results):
        status = "ok" if result.ok else f"error: {result.error['message']}"
        console.print(f"  🔧 {call.name} {call.arguments} → {status}", style="tool")
    if outcome.aborted:
        console.print(f"  ⚠️  Stopped early: {outcome.error}", style="warning")


async def repl(settings: Settings, session_id: str, providers: list[str]) -> None:
    """Interactive chat loop for one session."""
    catalog = default_catalog(settings.workspace_root)
    registry = ConnectionRegistry(catalog, settings)
    model = OllamaModelService(
        model=settings.ollama_model,
        host=settings.ollama_host,
        timeout=settings.model_timeout,
    )
    turn_loop = TurnLoop(
        registry,
        model,
        ContextBudget(settings.context_budget, settings.message_ceiling),
        max_turns=settings.max_turns,
    )
    conversation: list[Message] = [Message(role=Role.SYSTEM, content=SYSTEM_PROMPT)]

    async def connect(provider_id: str) -> None:
        try:
            with console.status(f"[bold green]Connecting {provider_id}...", spinner="dots"):
                connection = await registry.connect(session_id, provider_id)
            console.print(f"✅ Connected {connection.provider_id}", style="success")
        except ProviderConnectionError as exc:
            console.print(f"❌ {exc}", style="error")

    for provider_id in providers:
        await connect(provider_id)

    console.print("Type [bold]/help[/bold] for commands, or start chatting!\n", style="info")

    try:
        while True:
            user_input = (
                await asyncio.to_thread(Prompt.ask, "[bold blue]You[/bold blue]")
            ).strip()
            if not user_input:
                continue

            command, _, argument = user_input.partition(" ")
            command = command.lower()
            argument = argument.strip()

            if command in ("/quit", "/exit"):
                console.print("\n👋 Goodbye!\n", style="success")
                return
            if command == "/help":
                display_help()
                continue
            if command == "/providers":
                display_providers(catalog, registry, session_id)
                continue
            if command == "/connect" and argument:
                await connect(argument)
                continue
            if command == "/disconnect" and argument:
                if await registry.disconnect(session_id, argument):
                    console.print(f"🔌 Disconnected {argument}", style="success")
                else:
                    console.print(f"{argument} was not connected", style="warning")
                continue
            if command == "/tools":
                for tool in await turn_loop.discovery.catalog(session_id):
                    console.print(f"  • {tool.name}: {tool.descriptor.description}", style="info")
                continue
            if command == "/clear":
                conversation = conversation[:1]
                console.print("🗑️  Conversation history cleared.\n", style="success")
                continue

            conversation.append(Message(role=Role.USER, content=user_input))
            console.print()
            with console.status("[bold green]Thinking...", spinner="dots"):
                outcome = await turn_loop.run(session_id, conversation)
            conversation = outcome.conversation
            display_trace(outcome)
            console.print(
                Panel(
                    Markdown(outcome.message.content or "_(no answer)_"),
                    title="[bold green]assistant[/bold green]",
                    border_style="yellow" if outcome.aborted else "green",
                )
            )
            console.print()
    finally:
        await registry.close()


def main() -> None:
    """Main entry point for the switchboard CLI."""
    parser = argparse.ArgumentParser(description="Chat with tool providers.")
    parser.add_argument("--session", default="cli", help="Session id (default: cli)")
    parser.add_argument(
        "--provider",
        action="append",
        default=[],
        help="Provider id to connect at startup; repeatable.",
    )
    args = parser.parse_args()

    settings = Settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    console.print(f"📍 Ollama host: {settings.ollama_host}", style="info")
    console.print(f"🤖 Model: {settings.ollama_model}", style="info")
    console.print(f"💾 Context budget: {settings.context_budget} tokens\n", style="info")

    try:
        asyncio.run(repl(settings, args.session, args.provider))
    except KeyboardInterrupt:
        console.print("\n\n👋 Interrupted. Goodbye!\n", style="warning")
        sys.exit(0)


if __name__ == "__main__":
    main()
