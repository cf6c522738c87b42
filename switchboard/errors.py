"""switchboard/errors.py

Exception hierarchy for the orchestration core.

Only connection establishment and malformed tool names surface as raised
errors during normal operation. Tool failures are converted into ToolResult
data by the turn loop, and loop exhaustion or model failures are recorded on
the returned outcome rather than raised.
"""

from __future__ import annotations

# Standard Library
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from switchboard.models import ConnectionKey


class SwitchboardError(Exception):
    """Base exception for all switchboard errors."""


class ProviderConnectionError(SwitchboardError):
    """Raised when a provider connection cannot be established.

    Covers unknown provider ids, missing launch configuration and handshake
    failures or timeouts after the retry bound is exhausted.
    """

    def __init__(self, key: ConnectionKey, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Cannot connect {key}: {reason}")


class MalformedToolNameError(SwitchboardError):
    """Raised when a namespaced tool name cannot be decoded."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Malformed tool name {name!r}: {reason}")


class ToolExecutionError(SwitchboardError):
    """Raised by a connection when a single tool invocation fails.

    Attributes:
        kind: ``"execution"`` when the provider or transport reported a
            failure, ``"timeout"`` when the call did not finish in time.
    """

    def __init__(self, tool_name: str, message: str, kind: str = "execution") -> None:
        self.tool_name = tool_name
        self.message = message
        self.kind = kind
        super().__init__(f"Tool {tool_name!r} failed: {message}")


class ModelServiceError(SwitchboardError):
    """Raised when the language-model completion call fails or times out."""


class LoopExhaustedError(SwitchboardError):
    """Recorded on a turn outcome when the turn limit ran out."""

    def __init__(self, max_turns: int) -> None:
        self.max_turns = max_turns
        super().__init__(f"No final answer within {max_turns} turns")
