"""switchboard/chat_store.py

In-memory chat history kept for the HTTP surface.

Chats live for the lifetime of the process; nothing is persisted.
"""

from __future__ import annotations

# Standard Library
import uuid
import dataclasses
from typing import Any


@dataclasses.dataclass
class Chat:
    """One stored chat and its message history."""

    id: str
    title: str
    provider_id: str | None = None
    history: list[dict[str, Any]] = dataclasses.field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "providerId": self.provider_id}

    def to_dict(self) -> dict[str, Any]:
        return {**self.summary(), "history": list(self.history)}


class ChatStore:
    """Chats in creation order."""

    def __init__(self) -> None:
        self._chats: dict[str, Chat] = {}

    def __len__(self) -> int:
        return len(self._chats)

    def create(self, provider_id: str | None = None) -> Chat:
        chat = Chat(
            id=str(uuid.uuid4()),
            title=f"Chat {len(self._chats) + 1}",
            provider_id=provider_id,
        )
        self._chats[chat.id] = chat
        return chat

    def get(self, chat_id: str) -> Chat | None:
        return self._chats.get(chat_id)

    def get_or_create(
        self, chat_id: str | None = None, provider_id: str | None = None
    ) -> Chat:
        """Return the chat with ``chat_id``, or a new one if it does not exist.

        A given ``provider_id`` replaces the provider recorded on an existing
        chat.
        """
        if chat_id is not None:
            chat = self._chats.get(chat_id)
            if chat is not None:
                if provider_id is not None:
                    chat.provider_id = provider_id
                return chat
        return self.create(provider_id)

    def list(self) -> list[dict[str, Any]]:
        return [chat.summary() for chat in self._chats.values()]

    def add_message(self, chat_id: str, message: dict[str, Any]) -> bool:
        """Append a message to a chat's history.

        Returns:
            ``False`` if the chat does not exist.
        """
        chat = self._chats.get(chat_id)
        if chat is None:
            return False
        chat.history.append(message)
        return True
