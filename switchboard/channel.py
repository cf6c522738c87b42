"""switchboard/channel.py

Transport to one provider process, built on the FastMCP client.

A ProviderChannel is the whole surface the orchestrator sees of a provider:
open (spawn + handshake), list_tools, call_tool and close. It knows nothing
about sessions, timeouts or locking; the registry's Connection adds those.
"""

from __future__ import annotations

# Standard Library
import os
import logging
from contextlib import AsyncExitStack
from typing import Any, Callable

# Third-Party Libraries
from fastmcp import Client
from fastmcp.client.transports import StdioTransport

# Local Modules
from switchboard.catalog import ProviderSpec
from switchboard.models import JSONValue, ToolDescriptor

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ProviderSpec], Any]


def stdio_client_factory(spec: ProviderSpec) -> Client:
    """Build a FastMCP client that launches ``spec`` as a stdio subprocess."""
    transport = StdioTransport(
        command=spec.command,
        args=list(spec.args),
        env={**os.environ, **spec.env},
    )
    return Client(transport)


class ProviderChannel:
    """Long-lived client session with one provider process.

    Args:
        provider_id: Catalog id of the provider, used for descriptors and logs.
        client: An un-entered FastMCP ``Client`` (or any async context
            manager exposing the same ``list_tools`` / ``call_tool_mcp``
            coroutines).
    """

    def __init__(self, provider_id: str, client: Any) -> None:
        self.provider_id = provider_id
        self._client = client
        self._stack = AsyncExitStack()
        self._open = False
        self.capabilities: dict[str, Any] = {}

    async def open(self) -> None:
        """Start the provider and complete the MCP handshake.

        Any failure, including cancellation, closes whatever was started
        before propagating.
        """
        try:
            await self._stack.enter_async_context(self._client)
        except BaseException:
            await self._stack.aclose()
            raise
        self._open = True
        init = getattr(self._client, "initialize_result", None)
        capabilities = getattr(init, "capabilities", None)
        if capabilities is not None:
            self.capabilities = capabilities.model_dump(exclude_none=True)

    @property
    def alive(self) -> bool:
        if not self._open:
            return False
        is_connected = getattr(self._client, "is_connected", None)
        return bool(is_connected()) if callable(is_connected) else True

    async def list_tools(self) -> list[ToolDescriptor]:
        tools = await self._client.list_tools()
        return [
            ToolDescriptor(
                provider_id=self.provider_id,
                name=tool.name,
                description=tool.description or "",
                input_schema=dict(tool.inputSchema or {}),
            )
            for tool in tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> tuple[bool, JSONValue]:
        """Invoke one tool.

        Returns:
            ``(is_error, payload)`` where ``payload`` is the list of MCP
            content blocks as JSON-ready dicts.
        """
        result = await self._client.call_tool_mcp(name, arguments)
        payload = [
            block.model_dump(mode="json", exclude_none=True) for block in result.content
        ]
        return bool(result.isError), payload

    async def close(self) -> None:
        self._open = False
        await self._stack.aclose()
        logger.debug("Closed channel to provider %r", self.provider_id)
