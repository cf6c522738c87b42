"""tests/conftest.py

Pytest configuration and shared fixtures for the switchboard test suite.

Providers run in-process: the registry's client factory hands out FastMCP
in-memory clients instead of spawning subprocesses.
"""

from __future__ import annotations

# Standard Library
import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

# Third-Party Libraries
import pytest
import pytest_asyncio
from fastmcp import Client, FastMCP
from fastmcp.exceptions import ToolError

# Local Modules
from switchboard.catalog import ProviderCatalog, ProviderSpec
from switchboard.config import Settings
from switchboard.models import Message, NamespacedTool, Role
from switchboard.registry import ConnectionRegistry
from switchboard.servers.workspace import build_server


class BrokenClient:
    """Client whose handshake always fails."""

    async def __aenter__(self) -> BrokenClient:
        raise RuntimeError("provider exited during handshake")

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class HangingClient:
    """Client whose handshake never completes."""

    async def __aenter__(self) -> HangingClient:
        await asyncio.sleep(3600)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


def build_search_server() -> FastMCP:
    """A small provider with a working, a failing and a slow tool."""
    mcp: FastMCP = FastMCP("test-search")

    @mcp.tool()
    def search(query: str) -> str:
        """Search for a query."""
        return f"results for {query}"

    @mcp.tool()
    def fail(reason: str = "boom") -> str:
        """Always fails."""
        raise ToolError(reason)

    @mcp.tool()
    async def slow(seconds: float = 5.0) -> str:
        """Sleeps before answering."""
        await asyncio.sleep(seconds)
        return "done"

    return mcp


class ScriptedModel:
    """Model service that replays scripted replies and records every request.

    Each request is checked for dangling tool calls: every tool call in the
    conversation must already have its tool result.
    """

    def __init__(self, replies: Sequence[Message | Exception]) -> None:
        self.replies = list(replies)
        self.requests: list[tuple[list[Message], list[NamespacedTool]]] = []

    async def complete(
        self, conversation: Sequence[Message], catalog: Sequence[NamespacedTool]
    ) -> Message:
        answered = {m.tool_call_id for m in conversation if m.role is Role.TOOL}
        for message in conversation:
            for call in message.tool_calls:
                assert call.id in answered, f"dangling tool call {call.id}"
        self.requests.append((list(conversation), list(catalog)))
        reply = self.replies.pop(0) if self.replies else Message(Role.ASSISTANT, "done")
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def settings() -> Settings:
    """Settings with short timeouts, ignoring any local .env file."""
    return Settings(
        _env_file=None,
        connect_timeout=5.0,
        connect_attempts=2,
        list_tools_timeout=5.0,
        call_tool_timeout=5.0,
        model_timeout=5.0,
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Workspace directory holding a.txt."""
    (tmp_path / "a.txt").write_text("hello from a", encoding="utf-8")
    return tmp_path


@pytest.fixture
def servers(workspace: Path) -> dict[str, FastMCP]:
    return {"fs": build_server(workspace), "search": build_search_server()}


@pytest.fixture
def catalog() -> ProviderCatalog:
    def spec(provider_id: str, **kwargs: Any) -> ProviderSpec:
        return ProviderSpec(
            id=provider_id,
            name=provider_id,
            description=f"{provider_id} provider",
            category="Testing",
            command="unused",
            **kwargs,
        )

    return ProviderCatalog(
        [
            spec("fs"),
            spec("search"),
            spec("broken"),
            spec("hang"),
            spec("keyed", required_env=("SWITCHBOARD_TEST_KEY",)),
        ]
    )


@pytest.fixture
def client_factory(servers: dict[str, FastMCP]) -> Callable[[ProviderSpec], Any]:
    """Factory handing out in-memory clients; counts calls per provider id."""
    calls: dict[str, int] = {}

    def factory(spec: ProviderSpec) -> Any:
        calls[spec.id] = calls.get(spec.id, 0) + 1
        if spec.id == "broken":
            return BrokenClient()
        if spec.id == "hang":
            return HangingClient()
        return Client(servers[spec.id])

    factory.calls = calls  # type: ignore[attr-defined]
    return factory


@pytest_asyncio.fixture
async def registry(
    catalog: ProviderCatalog,
    settings: Settings,
    client_factory: Callable[[ProviderSpec], Any],
):
    """Registry over the test catalog; closed after the test."""
    registry = ConnectionRegistry(catalog, settings, client_factory=client_factory)
    yield registry
    await registry.close()


@pytest.fixture
def scripted_model() -> Callable[[Sequence[Message | Exception]], ScriptedModel]:
    return ScriptedModel
