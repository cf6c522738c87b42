"""switchboard/model_service.py

Language-model completion service consumed by the turn loop.

The turn loop only needs ``complete(conversation, catalog) -> Message``. The
Ollama implementation sends the catalog as function tools and turns the
model's tool requests into ToolCalls with fresh correlation ids (Ollama does
not assign any).
"""

from __future__ import annotations

# Standard Library
import json
import uuid
import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

# Third-Party Libraries
import httpx
from ollama import AsyncClient, ResponseError

# Local Modules
from switchboard.errors import ModelServiceError
from switchboard.models import Message, NamespacedTool, Role, ToolCall

logger = logging.getLogger(__name__)


class ModelService(Protocol):
    """Anything that can propose the next assistant action."""

    async def complete(
        self, conversation: Sequence[Message], catalog: Sequence[NamespacedTool]
    ) -> Message:
        """Return an assistant message carrying either content or tool calls."""
        ...


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


def to_ollama_message(message: Message) -> dict[str, Any]:
    """Convert a conversation message to Ollama's chat message format."""
    payload: dict[str, Any] = {
        "role": message.role.value,
        "content": message.content or "",
    }
    if message.tool_calls:
        payload["tool_calls"] = [
            {"function": {"name": call.name, "arguments": call.arguments}}
            for call in message.tool_calls
        ]
    if message.role is Role.TOOL and message.name:
        payload["tool_name"] = message.name
    return payload


def parse_arguments(raw: Any) -> tuple[dict[str, Any], str | None]:
    """Parse a model's raw tool arguments.

    Returns:
        ``(arguments, error)``; ``error`` is set when ``raw`` is not a JSON
        object (or a string holding one).
    """
    if raw is None or raw == "":
        return {}, None
    if isinstance(raw, Mapping):
        return dict(raw), None
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            return {}, f"invalid JSON arguments: {exc}"
        if isinstance(parsed, dict):
            return parsed, None
        return {}, "arguments must be a JSON object"
    return {}, f"unsupported arguments type: {type(raw).__name__}"


class OllamaModelService:
    """Model service backed by a local Ollama instance.

    Args:
        model: Ollama model tag.
        host: Ollama API endpoint.
        timeout: Seconds allowed for one completion.
        client: Pre-built ``AsyncClient``; created from ``host`` when omitted.
    """

    def __init__(
        self,
        model: str,
        host: str = "http://localhost:11434",
        timeout: float = 120.0,
        client: AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.host = host
        self.timeout = timeout
        self.client = client or AsyncClient(host=host)

    async def complete(
        self, conversation: Sequence[Message], catalog: Sequence[NamespacedTool]
    ) -> Message:
        """Ask the model for the next action.

        Raises:
            ModelServiceError: If Ollama is unreachable, rejects the request,
                or does not answer within the timeout.
        """
        messages = [to_ollama_message(message) for message in conversation]
        tools = [tool.to_schema() for tool in catalog] or None
        logger.debug(
            "Sending %d messages and %d tools to %s", len(messages), len(catalog), self.model
        )
        try:
            response = await asyncio.wait_for(
                self.client.chat(model=self.model, messages=messages, tools=tools),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ModelServiceError(
                f"Model {self.model!r} did not answer within {self.timeout:g}s"
            ) from exc
        except (ResponseError, httpx.HTTPError, ConnectionError) as exc:
            raise ModelServiceError(f"Model {self.model!r} request failed: {exc}") from exc

        raw_msg = response.message
        calls = []
        for raw_call in raw_msg.tool_calls or []:
            arguments, error = parse_arguments(raw_call.function.arguments)
            calls.append(
                ToolCall(
                    id=new_call_id(),
                    name=raw_call.function.name,
                    arguments=arguments,
                    argument_error=error,
                )
            )
        return Message(
            role=Role.ASSISTANT,
            content=raw_msg.content or None,
            tool_calls=tuple(calls),
        )
