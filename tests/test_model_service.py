"""tests/test_model_service.py

Unit tests for the Ollama-backed model service (switchboard/model_service.py).
The Ollama client is replaced by a fake; no model server is needed.
"""

from __future__ import annotations

# Standard Library
import asyncio
from types import SimpleNamespace
from typing import Any

# Third-Party Libraries
import pytest
from ollama import ResponseError

# Local Modules
from switchboard.errors import ModelServiceError
from switchboard.model_service import OllamaModelService, parse_arguments, to_ollama_message
from switchboard.models import Message, NamespacedTool, Role, ToolCall, ToolDescriptor


def reply(content: str = "", calls: list[tuple[str, Any]] | None = None) -> SimpleNamespace:
    tool_calls = [
        SimpleNamespace(function=SimpleNamespace(name=name, arguments=arguments))
        for name, arguments in calls or []
    ]
    return SimpleNamespace(message=SimpleNamespace(content=content, tool_calls=tool_calls or None))


class FakeClient:
    """Stands in for ollama.AsyncClient."""

    def __init__(self, response: Any = None, error: Exception | None = None, delay: float = 0) -> None:
        self.response = response
        self.error = error
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    async def chat(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


TOOL = NamespacedTool(
    "2_fs_read_file",
    ToolDescriptor("fs", "read_file", "Read a file", {"type": "object", "properties": {"path": {"type": "string"}}}),
)


class TestComplete:
    """Test suite for OllamaModelService.complete."""

    @pytest.mark.asyncio
    async def test_plain_answer(self) -> None:
        client = FakeClient(reply("Hello!"))
        service = OllamaModelService("llama3.1:8b", client=client)
        message = await service.complete([Message(Role.USER, "hi")], [])
        assert message == Message(Role.ASSISTANT, "Hello!")
        assert client.calls[0]["tools"] is None
        assert client.calls[0]["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_tool_calls_get_fresh_ids(self) -> None:
        client = FakeClient(
            reply(calls=[("2_fs_read_file", {"path": "a.txt"}), ("2_fs_read_file", {"path": "b.txt"})])
        )
        service = OllamaModelService("llama3.1:8b", client=client)
        message = await service.complete([Message(Role.USER, "read")], [TOOL])

        assert message.content is None
        assert [call.arguments for call in message.tool_calls] == [{"path": "a.txt"}, {"path": "b.txt"}]
        first, second = message.tool_calls
        assert first.id != second.id
        assert client.calls[0]["tools"][0]["function"]["name"] == "2_fs_read_file"

    @pytest.mark.asyncio
    async def test_unparseable_arguments_are_flagged(self) -> None:
        client = FakeClient(reply(calls=[("2_fs_read_file", "{not json")]))
        service = OllamaModelService("llama3.1:8b", client=client)
        (call,) = (await service.complete([Message(Role.USER, "read")], [TOOL])).tool_calls
        assert call.arguments == {}
        assert call.argument_error.startswith("invalid JSON arguments")

    @pytest.mark.asyncio
    async def test_response_error(self) -> None:
        service = OllamaModelService("missing", client=FakeClient(error=ResponseError("model not found", 404)))
        with pytest.raises(ModelServiceError, match="model not found"):
            await service.complete([Message(Role.USER, "hi")], [])

    @pytest.mark.asyncio
    async def test_unreachable(self) -> None:
        service = OllamaModelService("m", client=FakeClient(error=ConnectionError("refused")))
        with pytest.raises(ModelServiceError):
            await service.complete([Message(Role.USER, "hi")], [])

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        service = OllamaModelService("m", timeout=0.05, client=FakeClient(reply("late"), delay=5))
        with pytest.raises(ModelServiceError, match="did not answer"):
            await service.complete([Message(Role.USER, "hi")], [])


class TestConversion:
    """Test suite for message conversion helpers."""

    def test_assistant_tool_request(self) -> None:
        message = Message(
            Role.ASSISTANT, None, tool_calls=(ToolCall("c1", "2_fs_read_file", {"path": "a"}),)
        )
        assert to_ollama_message(message) == {
            "role": "assistant",
            "content": "",
            "tool_calls": [{"function": {"name": "2_fs_read_file", "arguments": {"path": "a"}}}],
        }

    def test_tool_result_carries_tool_name(self) -> None:
        message = Message(Role.TOOL, '"ok"', tool_call_id="c1", name="2_fs_read_file")
        assert to_ollama_message(message)["tool_name"] == "2_fs_read_file"

    @pytest.mark.parametrize(
        ("raw", "expected", "has_error"),
        [
            (None, {}, False),
            ("", {}, False),
            ({"a": 1}, {"a": 1}, False),
            ('{"a": 1}', {"a": 1}, False),
            ("[1, 2]", {}, True),
            ("{oops", {}, True),
            (42, {}, True),
        ],
    )
    def test_parse_arguments(self, raw: Any, expected: dict, has_error: bool) -> None:
        arguments, error = parse_arguments(raw)
        assert arguments == expected
        assert (error is not None) == has_error
