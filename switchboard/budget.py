"""switchboard/budget.py

Context budget manager: keeps a conversation within an estimated-token
envelope before every model call.

Sizes are estimated, not tokenized: three characters per token, with a small
constant for messages that carry no text. The estimate only needs to be
monotonic in content length and deterministic so that pruning is repeatable.
"""

from __future__ import annotations

# Standard Library
import math
import logging
import dataclasses
from collections.abc import Sequence

# Local Modules
from switchboard.models import Message, Role

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 3
EMPTY_MESSAGE_TOKENS = 4
# Content beyond this many characters does not change the estimate.
ESTIMATE_CHAR_CAP = 1_000_000
TRUNCATION_MARKER = "…[truncated]"


def estimate_tokens(text: str) -> int:
    """Approximate token count of ``text``."""
    return math.ceil(min(len(text), ESTIMATE_CHAR_CAP) / CHARS_PER_TOKEN)


class ContextBudget:
    """Clips oversized messages and prunes old ones to fit a budget.

    Args:
        budget: Maximum estimated size of the whole conversation.
        message_ceiling: Maximum estimated size of a single message; larger
            messages are truncated whether or not the total is over budget.
    """

    def __init__(self, budget: int = 120_000, message_ceiling: int = 8_000) -> None:
        if budget <= 0 or message_ceiling <= 0:
            raise ValueError("budget and message_ceiling must be positive")
        self.budget = budget
        self.message_ceiling = message_ceiling

    def cost(self, message: Message) -> int:
        if message.content is None:
            return EMPTY_MESSAGE_TOKENS
        return estimate_tokens(message.content)

    def total(self, messages: Sequence[Message]) -> int:
        return sum(self.cost(message) for message in messages)

    def clip(self, message: Message) -> Message:
        """Return ``message`` truncated to the per-message ceiling, if needed."""
        if message.content is None or self.cost(message) <= self.message_ceiling:
            return message
        keep = self.message_ceiling * CHARS_PER_TOKEN
        return dataclasses.replace(
            message, content=message.content[:keep] + TRUNCATION_MARKER
        )

    def fit(self, conversation: Sequence[Message], budget: int | None = None) -> list[Message]:
        """Clip and prune a conversation so it fits the budget.

        Pruning removes the oldest non-pinned message first. Removing an
        assistant message that requested tools also removes the tool results
        answering it. At least one message is always kept, and pinned
        (system) messages are never removed, so the result may still exceed
        the budget when nothing else can go.

        Args:
            conversation: Messages in conversation order; not modified.
            budget: Overrides the configured budget for this call.

        Returns:
            A new list in the original order.
        """
        budget = self.budget if budget is None else budget
        fitted = [self.clip(message) for message in conversation]
        clipped = sum(1 for old, new in zip(conversation, fitted) if old is not new)

        total = self.total(fitted)
        removed = 0
        while total > budget and len(fitted) > 1:
            index = next((i for i, m in enumerate(fitted) if not m.pinned), None)
            if index is None:
                break
            group = self._removal_group(fitted, index)
            if len(group) >= len(fitted):
                break
            for position in sorted(group, reverse=True):
                total -= self.cost(fitted.pop(position))
                removed += 1

        _check_subsequence(conversation, fitted)
        if clipped or removed:
            logger.info(
                "Fitted conversation: clipped=%d removed=%d total=%d budget=%d",
                clipped,
                removed,
                total,
                budget,
            )
        return fitted

    @staticmethod
    def _removal_group(messages: list[Message], index: int) -> list[int]:
        """Indices removed together with ``messages[index]``."""
        head = messages[index]
        if head.role is not Role.ASSISTANT or not head.tool_calls:
            return [index]
        call_ids = {call.id for call in head.tool_calls}
        answers = [
            i
            for i in range(index + 1, len(messages))
            if messages[i].role is Role.TOOL and messages[i].tool_call_id in call_ids
        ]
        return [index, *answers]


def _check_subsequence(original: Sequence[Message], fitted: Sequence[Message]) -> None:
    """Verify ``fitted`` keeps order and every pinned message of ``original``."""
    position = 0
    for message in original:
        if position < len(fitted) and _same_origin(message, fitted[position]):
            position += 1
        elif message.pinned:
            raise RuntimeError("Context fit removed a pinned message")
    if position != len(fitted):
        raise RuntimeError("Context fit reordered the conversation")


def _same_origin(original: Message, fitted: Message) -> bool:
    if original is fitted:
        return True
    return (
        original.role is fitted.role
        and original.tool_call_id == fitted.tool_call_id
        and original.tool_calls == fitted.tool_calls
        and fitted.content is not None
        and fitted.content.endswith(TRUNCATION_MARKER)
        and original.content is not None
        and original.content.startswith(fitted.content[: -len(TRUNCATION_MARKER)])
    )
