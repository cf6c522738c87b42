"""switchboard/models.py

Value types shared by the registry, discovery, budget manager and turn loop.

Tool arguments, input schemas and tool payloads are opaque JSON values: the
orchestrator passes them through and only the provider interprets them.
"""

from __future__ import annotations

# Standard Library
import json
import dataclasses
from enum import Enum
from typing import Any, Union

JSONValue = Union[None, bool, int, float, str, list[Any], dict[str, Any]]


class Role(str, Enum):
    """Conversation message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclasses.dataclass(frozen=True)
class ConnectionKey:
    """Registry identity of a connection: one provider within one session."""

    session_id: str
    provider_id: str

    def __str__(self) -> str:
        # JSON keeps the boundary unambiguous whatever characters the ids hold.
        return json.dumps([self.session_id, self.provider_id])


@dataclasses.dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model.

    Attributes:
        id: Correlation id linking the call to its ToolResult.
        name: Namespaced tool name as exposed to the model.
        arguments: Parsed argument payload.
        argument_error: Set instead of ``arguments`` when the model's raw
            arguments could not be parsed.
    """

    id: str
    name: str
    arguments: dict[str, Any] = dataclasses.field(default_factory=dict)
    argument_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
        }
        if self.argument_error is not None:
            data["argumentError"] = self.argument_error
        return data


@dataclasses.dataclass(frozen=True)
class ToolResult:
    """Outcome of exactly one ToolCall: a success payload or an error."""

    call_id: str
    name: str
    payload: JSONValue = None
    error: dict[str, str] | None = None

    @classmethod
    def success(cls, call: ToolCall, payload: JSONValue) -> ToolResult:
        return cls(call_id=call.id, name=call.name, payload=payload)

    @classmethod
    def failure(cls, call: ToolCall, kind: str, message: str) -> ToolResult:
        return cls(
            call_id=call.id,
            name=call.name,
            error={"kind": kind, "message": message},
        )

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_message(self) -> Message:
        """Render the result as the tool message appended to the conversation."""
        body = self.payload if self.ok else {"error": self.error}
        return Message(
            role=Role.TOOL,
            content=json.dumps(body, ensure_ascii=False, default=str),
            tool_call_id=self.call_id,
            name=self.name,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"callId": self.call_id, "name": self.name}
        if self.ok:
            data["payload"] = self.payload
        else:
            data["error"] = self.error
        return data


@dataclasses.dataclass(frozen=True)
class Message:
    """One conversation message.

    ``content`` is ``None`` when an assistant message only records tool calls.
    ``tool_call_id`` and ``name`` are set on tool messages.
    """

    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    name: str | None = None

    @property
    def pinned(self) -> bool:
        """System messages are never pruned from a conversation."""
        return self.role is Role.SYSTEM

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["toolCalls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id is not None:
            data["toolCallId"] = self.tool_call_id
        if self.name is not None:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        """Build a message from its wire form.

        Raises:
            ValueError: If the role is missing or unknown.
        """
        calls = tuple(
            ToolCall(
                id=str(call["id"]),
                name=str(call["name"]),
                arguments=dict(call.get("arguments") or {}),
            )
            for call in data.get("toolCalls") or ()
        )
        return cls(
            role=Role(data["role"]),
            content=data.get("content"),
            tool_calls=calls,
            tool_call_id=data.get("toolCallId"),
            name=data.get("name"),
        )


@dataclasses.dataclass(frozen=True)
class ToolDescriptor:
    """A tool as reported by its provider."""

    provider_id: str
    name: str
    description: str = ""
    input_schema: dict[str, Any] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class NamespacedTool:
    """A ToolDescriptor exposed to the model under a collision-free name."""

    name: str
    descriptor: ToolDescriptor

    def to_schema(self) -> dict[str, Any]:
        """Return the tool in function-calling format."""
        parameters = self.descriptor.input_schema or {"type": "object", "properties": {}}
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.descriptor.description,
                "parameters": parameters,
            },
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "providerId": self.descriptor.provider_id,
            "toolName": self.descriptor.name,
            "description": self.descriptor.description,
            "inputSchema": self.descriptor.input_schema,
        }
