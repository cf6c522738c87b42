"""switchboard/registry.py

Connection registry: owns every live provider connection, keyed by
(session id, provider id).

Mutations of one key are serialized by a per-key ``asyncio.Lock``, so two
concurrent ``connect`` calls for the same key spawn a single process and both
callers get the same Connection. Keys of different sessions never share a
lock and never wait on each other.
"""

from __future__ import annotations

# Standard Library
import asyncio
import logging
from collections import defaultdict
from typing import Any

# Local Modules
from switchboard.catalog import ProviderCatalog
from switchboard.channel import ClientFactory, ProviderChannel, stdio_client_factory
from switchboard.config import Settings
from switchboard.errors import ProviderConnectionError, ToolExecutionError
from switchboard.models import ConnectionKey, JSONValue, ToolDescriptor

logger = logging.getLogger(__name__)


class Connection:
    """A live provider connection owned by the registry.

    Calls on one connection are serialized: a stdio channel is a single
    ordered stream and concurrent requests on it would corrupt correlation.
    """

    def __init__(
        self,
        key: ConnectionKey,
        channel: ProviderChannel,
        list_tools_timeout: float,
        call_tool_timeout: float,
    ) -> None:
        self.key = key
        self.channel = channel
        self.list_tools_timeout = list_tools_timeout
        self.call_tool_timeout = call_tool_timeout
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"Connection({self.key})"

    @property
    def session_id(self) -> str:
        return self.key.session_id

    @property
    def provider_id(self) -> str:
        return self.key.provider_id

    @property
    def capabilities(self) -> dict[str, Any]:
        return self.channel.capabilities

    @property
    def alive(self) -> bool:
        return self.channel.alive

    async def list_tools(self) -> list[ToolDescriptor]:
        """Query the provider's tool list.

        Raises:
            asyncio.TimeoutError: If the provider does not answer in time.
        """
        async with self._lock:
            return await asyncio.wait_for(
                self.channel.list_tools(), timeout=self.list_tools_timeout
            )

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> JSONValue:
        """Invoke a tool by its provider-local name.

        Returns:
            The provider's result payload.

        Raises:
            ToolExecutionError: If the provider reports an error, the
                transport fails, or the call times out.
        """
        async with self._lock:
            try:
                is_error, payload = await asyncio.wait_for(
                    self.channel.call_tool(name, arguments),
                    timeout=self.call_tool_timeout,
                )
            except asyncio.TimeoutError as exc:
                raise ToolExecutionError(
                    name, f"timed out after {self.call_tool_timeout:g}s", kind="timeout"
                ) from exc
            except Exception as exc:
                raise ToolExecutionError(name, str(exc) or type(exc).__name__) from exc
        if is_error:
            raise ToolExecutionError(name, _error_text(payload))
        return payload

    async def close(self) -> None:
        await self.channel.close()


def _error_text(payload: JSONValue) -> str:
    if isinstance(payload, list):
        texts = [block.get("text", "") for block in payload if isinstance(block, dict)]
        joined = "\n".join(text for text in texts if text)
        if joined:
            return joined
    return "provider reported an error"


class ConnectionRegistry:
    """Per-session provider connections.

    Args:
        catalog: Provider launch specs looked up by id.
        settings: Timeouts and the connect retry bound.
        client_factory: Builds the (un-entered) FastMCP client for a spec.
            Defaults to launching the provider as a stdio subprocess.
    """

    def __init__(
        self,
        catalog: ProviderCatalog,
        settings: Settings,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.catalog = catalog
        self.settings = settings
        self.client_factory = client_factory or stdio_client_factory
        self._connections: dict[ConnectionKey, Connection] = {}
        self._locks: defaultdict[ConnectionKey, asyncio.Lock] = defaultdict(asyncio.Lock)
        # Dead connections dropped by _live, still holding an open client context.
        self._evicted: list[Connection] = []

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, session_id: str, provider_id: str) -> Connection:
        """Return the live connection for the key, establishing it if needed.

        Args:
            session_id: Session that owns the connection.
            provider_id: Catalog id of the provider.

        Returns:
            The existing live Connection, or a newly established one.

        Raises:
            ProviderConnectionError: If the provider is unknown, its required
                configuration is missing, or every handshake attempt failed.
        """
        key = ConnectionKey(session_id, provider_id)
        spec = self.catalog.get(provider_id)
        if spec is None:
            raise ProviderConnectionError(key, "unknown provider")

        async with self._locks[key]:
            existing = self._live(key)
            await self._close_evicted()
            if existing is not None:
                return existing

            missing = spec.missing_env()
            if missing:
                raise ProviderConnectionError(
                    key, f"missing configuration: {', '.join(missing)}"
                )

            attempts = self.settings.connect_attempts
            last_error = "no attempt made"
            for attempt in range(1, attempts + 1):
                channel = ProviderChannel(provider_id, self.client_factory(spec))
                try:
                    await asyncio.wait_for(
                        channel.open(), timeout=self.settings.connect_timeout
                    )
                except asyncio.TimeoutError:
                    last_error = f"handshake timed out after {self.settings.connect_timeout:g}s"
                except Exception as exc:
                    last_error = f"handshake failed: {exc}"
                else:
                    connection = Connection(
                        key,
                        channel,
                        list_tools_timeout=self.settings.list_tools_timeout,
                        call_tool_timeout=self.settings.call_tool_timeout,
                    )
                    self._connections[key] = connection
                    logger.info(
                        "Connected %s (attempt %d/%d)", key, attempt, attempts
                    )
                    return connection
                logger.warning(
                    "Connect %s attempt %d/%d failed: %s", key, attempt, attempts, last_error
                )
            raise ProviderConnectionError(key, last_error)

    def get(self, session_id: str, provider_id: str) -> Connection | None:
        """Return the live connection for the key, or ``None``."""
        return self._live(ConnectionKey(session_id, provider_id))

    def connections(self, session_id: str) -> list[Connection]:
        """Live connections of a session, in the order they were established."""
        keys = [key for key in self._connections if key.session_id == session_id]
        live = (self._live(key) for key in keys)
        return [connection for connection in live if connection is not None]

    def sessions(self) -> list[str]:
        return list(dict.fromkeys(key.session_id for key in self._connections))

    async def disconnect(self, session_id: str, provider_id: str) -> bool:
        """Close and remove one connection.

        The entry is removed even if closing the provider fails; the failure
        is logged.

        Returns:
            ``True`` if a connection was removed, ``False`` if none existed.
        """
        key = ConnectionKey(session_id, provider_id)
        if key not in self._connections:
            return False
        async with self._locks[key]:
            connection = self._connections.pop(key, None)
            if connection is None:
                return False
            await self._close_quietly(connection)
            logger.info("Disconnected %s", key)
            return True

    async def disconnect_all(self, session_id: str) -> list[str]:
        """Close every connection of a session.

        Returns:
            Provider ids that were disconnected.
        """
        provider_ids = [
            key.provider_id for key in list(self._connections) if key.session_id == session_id
        ]
        disconnected: list[str] = []
        for provider_id in provider_ids:
            if await self.disconnect(session_id, provider_id):
                disconnected.append(provider_id)
        return disconnected

    async def close(self) -> None:
        """Tear down every session's connections."""
        for session_id in self.sessions():
            await self.disconnect_all(session_id)
        await self._close_evicted()

    def _live(self, key: ConnectionKey) -> Connection | None:
        connection = self._connections.get(key)
        if connection is None:
            return None
        if not connection.alive:
            # The provider process went away; the client context is closed
            # on the next connect or close.
            logger.warning("Evicting dead connection %s", key)
            del self._connections[key]
            self._evicted.append(connection)
            return None
        return connection

    async def _close_evicted(self) -> None:
        while self._evicted:
            await self._close_quietly(self._evicted.pop())

    async def _close_quietly(self, connection: Connection) -> None:
        try:
            await connection.close()
        except Exception as exc:
            logger.error("Error closing %s: %s", connection.key, exc)
