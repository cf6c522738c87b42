"""switchboard/turn_loop.py

Turn loop controller: the bounded plan -> dispatch cycle behind every chat
request.

Each turn fits the transcript to the context budget, asks the model for the
next action with the session's tool catalog and, when the model requests
tools, dispatches them through the registry and appends one result per call
before planning again. The loop stops with a final answer (``done``) or when
the turn limit or a model failure ends it early (``aborted``); either way the
caller gets a message and the full call/result trace.
"""

from __future__ import annotations

# Standard Library
import asyncio
import logging
import dataclasses
from collections.abc import Sequence
from enum import Enum

# Local Modules
from switchboard.budget import ContextBudget
from switchboard.discovery import ToolDiscovery
from switchboard.errors import (
    LoopExhaustedError,
    MalformedToolNameError,
    ModelServiceError,
    SwitchboardError,
    ToolExecutionError,
)
from switchboard.model_service import ModelService
from switchboard.models import Message, NamespacedTool, Role, ToolCall, ToolResult
from switchboard.naming import decode
from switchboard.registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    PLANNING = "planning"
    DISPATCHING = "dispatching"
    DONE = "done"
    ABORTED = "aborted"


@dataclasses.dataclass
class TurnOutcome:
    """Result of one turn-loop run.

    Attributes:
        message: The final assistant message, or the best partial answer when
            the loop was aborted.
        tool_calls: Every ToolCall issued, across all turns, in order.
        tool_results: One ToolResult per issued call, in the same order.
        state: ``DONE`` or ``ABORTED``.
        turns: Planning turns used.
        conversation: The transcript as last fitted, plus every message
            appended after that fit (tool calls, results, final reply).
        error: Why the loop was aborted, if it was.
    """

    message: Message
    tool_calls: list[ToolCall]
    tool_results: list[ToolResult]
    state: TurnState
    turns: int
    conversation: list[Message]
    error: SwitchboardError | None = None

    @property
    def aborted(self) -> bool:
        return self.state is TurnState.ABORTED


class TurnLoop:
    """Drives plan/dispatch turns for one session at a time.

    Instances hold no per-request state, so one TurnLoop can serve many
    sessions concurrently.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        model: ModelService,
        budget: ContextBudget,
        discovery: ToolDiscovery | None = None,
        max_turns: int = 6,
    ) -> None:
        self.registry = registry
        self.model = model
        self.budget = budget
        self.discovery = discovery or ToolDiscovery(registry)
        self.max_turns = max_turns

    async def run(
        self,
        session_id: str,
        messages: Sequence[Message],
        *,
        use_tools: bool = True,
        max_turns: int | None = None,
    ) -> TurnOutcome:
        """Run the loop until a final answer or the turn limit.

        Args:
            session_id: Session whose connections provide the tools.
            messages: Caller-supplied conversation; not modified.
            use_tools: When false the model is offered no tools.
            max_turns: Planning turns allowed; defaults to the loop's limit.

        Returns:
            The outcome; tool failures and aborts are reported in it rather
            than raised.
        """
        limit = self.max_turns if max_turns is None else max_turns
        if limit < 1:
            raise ValueError("max_turns must be at least 1")

        conversation = list(messages)
        tool_calls: list[ToolCall] = []
        tool_results: list[ToolResult] = []
        pending: tuple[ToolCall, ...] = ()
        final: Message | None = None
        error: SwitchboardError | None = None
        turns = 0
        state = TurnState.PLANNING

        while state in (TurnState.PLANNING, TurnState.DISPATCHING):
            if state is TurnState.PLANNING:
                if turns >= limit:
                    error = LoopExhaustedError(limit)
                    state = TurnState.ABORTED
                    continue
                turns += 1
                conversation = self.budget.fit(conversation)
                catalog: list[NamespacedTool] = (
                    await self.discovery.catalog(session_id) if use_tools else []
                )
                try:
                    reply = await self.model.complete(conversation, catalog)
                except ModelServiceError as exc:
                    logger.error("Session %r turn %d: %s", session_id, turns, exc)
                    error = exc
                    state = TurnState.ABORTED
                    continue

                if not reply.tool_calls:
                    final = reply
                    conversation.append(reply)
                    state = TurnState.DONE
                    continue

                conversation.append(
                    Message(
                        role=Role.ASSISTANT,
                        content=reply.content,
                        tool_calls=reply.tool_calls,
                    )
                )
                pending = reply.tool_calls
                tool_calls.extend(pending)
                logger.info(
                    "Session %r turn %d: model requested %s",
                    session_id,
                    turns,
                    [call.name for call in pending],
                )
                state = TurnState.DISPATCHING

            else:
                results = await self.dispatch(session_id, pending)
                conversation.extend(result.to_message() for result in results)
                tool_results.extend(results)
                pending = ()
                state = TurnState.PLANNING

        if final is None:
            final = Message(role=Role.ASSISTANT, content=_last_assistant_content(conversation))
            logger.warning(
                "Session %r aborted after %d turns: %s", session_id, turns, error
            )

        return TurnOutcome(
            message=final,
            tool_calls=tool_calls,
            tool_results=tool_results,
            state=state,
            turns=turns,
            conversation=conversation,
            error=error,
        )

    async def dispatch(
        self, session_id: str, calls: Sequence[ToolCall]
    ) -> list[ToolResult]:
        """Execute one turn's tool calls and return their results in call order.

        Calls to different connections run concurrently; calls to the same
        connection run one after another in request order. Every call gets
        exactly one result.
        """
        results: dict[int, ToolResult] = {}
        batches: dict[str, tuple[Connection, list[tuple[int, ToolCall, str]]]] = {}

        for index, call in enumerate(calls):
            try:
                provider_id, tool_name = decode(call.name)
            except MalformedToolNameError:
                results[index] = ToolResult.failure(
                    call, "unknown_tool", f"Tool {call.name!r} not found"
                )
                continue
            if call.argument_error is not None:
                results[index] = ToolResult.failure(
                    call, "invalid_arguments", call.argument_error
                )
                continue
            connection = self.registry.get(session_id, provider_id)
            if connection is None:
                results[index] = ToolResult.failure(
                    call, "not_connected", f"Provider {provider_id!r} is not connected"
                )
                continue
            batches.setdefault(provider_id, (connection, []))[1].append(
                (index, call, tool_name)
            )

        async def run_batch(
            connection: Connection, batch: list[tuple[int, ToolCall, str]]
        ) -> None:
            for index, call, tool_name in batch:
                results[index] = await self._invoke(connection, call, tool_name)

        await asyncio.gather(
            *(run_batch(connection, batch) for connection, batch in batches.values())
        )
        return [results[index] for index in range(len(calls))]

    async def _invoke(
        self, connection: Connection, call: ToolCall, tool_name: str
    ) -> ToolResult:
        try:
            payload = await connection.call_tool(tool_name, call.arguments)
        except ToolExecutionError as exc:
            logger.warning("Tool %r on %s failed: %s", tool_name, connection.key, exc.message)
            return ToolResult.failure(call, exc.kind, exc.message)
        logger.info("Tool executed: %r on %s", tool_name, connection.key)
        return ToolResult.success(call, payload)


def _last_assistant_content(conversation: Sequence[Message]) -> str:
    for message in reversed(conversation):
        if message.role is Role.ASSISTANT and message.content:
            return message.content
    return ""
