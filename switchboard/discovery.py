"""switchboard/discovery.py

Builds the flat, namespaced tool catalog for one session from the registry's
live connections.
"""

from __future__ import annotations

# Standard Library
import asyncio
import logging

# Local Modules
from switchboard.models import NamespacedTool, ToolDescriptor
from switchboard.naming import encode
from switchboard.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class ToolDiscovery:
    """Produces the tool catalog exposed to the model for a session."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    async def catalog(self, session_id: str) -> list[NamespacedTool]:
        """List every tool of every live connection of the session.

        Providers are queried concurrently; the catalog is assembled in
        connection order. A provider whose listing fails is logged and left
        out rather than failing the whole catalog.

        Args:
            session_id: Session whose connections are queried.

        Returns:
            Namespaced tools, without duplicate names.
        """
        connections = self.registry.connections(session_id)
        listings = await asyncio.gather(
            *(connection.list_tools() for connection in connections),
            return_exceptions=True,
        )

        tools: list[NamespacedTool] = []
        seen: set[str] = set()
        for connection, listing in zip(connections, listings):
            if isinstance(listing, BaseException) and not isinstance(listing, Exception):
                raise listing
            if isinstance(listing, Exception):
                logger.warning(
                    "Skipping tools of %s: listing failed: %r", connection.key, listing
                )
                continue
            for descriptor in listing:
                tool = namespace(descriptor)
                if tool.name in seen:
                    logger.warning(
                        "Dropping duplicate tool %r from %s", tool.name, connection.key
                    )
                    continue
                seen.add(tool.name)
                tools.append(tool)

        logger.debug("Catalog for session %r: %d tools", session_id, len(tools))
        return tools


def namespace(descriptor: ToolDescriptor) -> NamespacedTool:
    return NamespacedTool(
        name=encode(descriptor.provider_id, descriptor.name),
        descriptor=descriptor,
    )
