"""tests/test_discovery.py

Unit tests for ToolDiscovery (switchboard/discovery.py).
"""

from __future__ import annotations

# Standard Library
from types import SimpleNamespace

# Third-Party Libraries
import pytest

# Local Modules
from switchboard.discovery import ToolDiscovery
from switchboard.models import ConnectionKey, ToolDescriptor
from switchboard.naming import decode, encode
from switchboard.registry import ConnectionRegistry


class StubConnection:
    def __init__(self, provider_id: str, tools: list[str] | Exception) -> None:
        self.key = ConnectionKey("s1", provider_id)
        self.provider_id = provider_id
        self.tools = tools

    async def list_tools(self) -> list[ToolDescriptor]:
        if isinstance(self.tools, Exception):
            raise self.tools
        return [ToolDescriptor(self.provider_id, name) for name in self.tools]


def stub_registry(*connections: StubConnection) -> SimpleNamespace:
    return SimpleNamespace(connections=lambda session_id: list(connections))


class TestCatalog:
    """Test suite for ToolDiscovery.catalog."""

    @pytest.mark.asyncio
    async def test_catalog_of_live_connections(self, registry: ConnectionRegistry) -> None:
        await registry.connect("s1", "fs")
        await registry.connect("s1", "search")
        catalog = await ToolDiscovery(registry).catalog("s1")
        names = {tool.name for tool in catalog}
        assert encode("fs", "read_file") in names
        assert encode("fs", "write_file") in names
        assert encode("search", "search") in names
        for tool in catalog:
            assert decode(tool.name) == (tool.descriptor.provider_id, tool.descriptor.name)

    @pytest.mark.asyncio
    async def test_empty_session(self, registry: ConnectionRegistry) -> None:
        await registry.connect("s1", "fs")
        assert await ToolDiscovery(registry).catalog("s2") == []

    @pytest.mark.asyncio
    async def test_failing_provider_is_skipped(self) -> None:
        registry = stub_registry(
            StubConnection("a", RuntimeError("listing exploded")),
            StubConnection("b", ["ping"]),
        )
        catalog = await ToolDiscovery(registry).catalog("s1")
        assert [tool.name for tool in catalog] == [encode("b", "ping")]

    @pytest.mark.asyncio
    async def test_duplicate_tools_are_dropped(self) -> None:
        registry = stub_registry(StubConnection("a", ["ping", "ping", "pong"]))
        catalog = await ToolDiscovery(registry).catalog("s1")
        assert [tool.name for tool in catalog] == [encode("a", "ping"), encode("a", "pong")]

    @pytest.mark.asyncio
    async def test_same_tool_name_on_two_providers(self) -> None:
        registry = stub_registry(StubConnection("a_b", ["c"]), StubConnection("a", ["b_c"]))
        catalog = await ToolDiscovery(registry).catalog("s1")
        assert len({tool.name for tool in catalog}) == 2

    @pytest.mark.asyncio
    async def test_schema_defaults_to_empty_object(self) -> None:
        registry = stub_registry(StubConnection("a", ["ping"]))
        (tool,) = await ToolDiscovery(registry).catalog("s1")
        schema = tool.to_schema()
        assert schema["function"]["name"] == encode("a", "ping")
        assert schema["function"]["parameters"] == {"type": "object", "properties": {}}
