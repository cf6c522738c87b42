"""tests/test_workspace_server.py

Tests for the bundled workspace provider (switchboard/servers/workspace.py),
called through a FastMCP in-memory client.
"""

from __future__ import annotations

# Standard Library
import json
from pathlib import Path

# Third-Party Libraries
import pytest
from fastmcp import Client
from fastmcp.exceptions import ToolError

# Local Modules
from switchboard.servers.workspace import build_server


def text_of(result) -> str:
    return result.content[0].text


class TestWorkspaceServer:
    """Test suite for the read_file / write_file / list_directory tools."""

    @pytest.mark.asyncio
    async def test_lists_tools(self, workspace: Path) -> None:
        async with Client(build_server(workspace)) as client:
            names = {tool.name for tool in await client.list_tools()}
        assert names == {"read_file", "write_file", "list_directory"}

    @pytest.mark.asyncio
    async def test_read_file(self, workspace: Path) -> None:
        async with Client(build_server(workspace)) as client:
            result = await client.call_tool("read_file", {"path": "a.txt"})
        assert text_of(result) == "hello from a"

    @pytest.mark.asyncio
    async def test_write_creates_directories(self, workspace: Path) -> None:
        async with Client(build_server(workspace)) as client:
            await client.call_tool("write_file", {"path": "notes/b.txt", "content": "new"})
        assert (workspace / "notes" / "b.txt").read_text(encoding="utf-8") == "new"

    @pytest.mark.asyncio
    async def test_list_directory(self, workspace: Path) -> None:
        (workspace / "sub").mkdir()
        async with Client(build_server(workspace)) as client:
            result = await client.call_tool("list_directory", {})
        assert json.loads(text_of(result)) == [
            {"name": "a.txt", "type": "file"},
            {"name": "sub", "type": "directory"},
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["../outside.txt", "/etc/passwd", "sub/../../x"])
    async def test_rejects_paths_outside_root(self, workspace: Path, path: str) -> None:
        async with Client(build_server(workspace)) as client:
            with pytest.raises(ToolError, match="escapes"):
                await client.call_tool("read_file", {"path": path})

    @pytest.mark.asyncio
    async def test_missing_file(self, workspace: Path) -> None:
        async with Client(build_server(workspace)) as client:
            result = await client.call_tool_mcp("read_file", {"path": "nope.txt"})
        assert result.isError
        assert "No such file" in result.content[0].text
