"""
Chat history storage.

The history store is an external collaborator; the core only needs atomic
read/replace of a chat's message list. InMemoryHistoryStore is the default
implementation and could be swapped for a database-backed one.
"""

import logging
import time
from typing import Protocol, Sequence

from config.defaults import CHAT_TITLE_MAX_CHARS

from .exceptions import InvalidRequestError, NotFoundError
from .models import DEFAULT_CHAT_TITLE, ChatRecord, Message, gen_id

logger = logging.getLogger(__name__)


class HistoryStore(Protocol):
    """Persistence interface for chat transcripts."""

    async def exists(self, chat_id: str, user_id: str) -> bool:
        ...

    async def create(
        self,
        user_id: str,
        chat_id: str | None = None,
        initial_message: Message | None = None,
    ) -> str:
        ...

    async def load(self, chat_id: str, user_id: str) -> list[Message] | None:
        ...

    async def save(self, chat_id: str, user_id: str, messages: Sequence[Message]) -> None:
        ...


def title_from_message(message: Message | None) -> str:
    """Derive a chat title from the text of a message."""
    if message is None:
        return DEFAULT_CHAT_TITLE
    text = " ".join(p.text for p in message.parts if getattr(p, "type", None) == "text").strip()
    if not text:
        return DEFAULT_CHAT_TITLE
    return text[:CHAT_TITLE_MAX_CHARS] + "..."


class InMemoryHistoryStore:
    """HistoryStore keeping chats in a dict.

    Writes replace the whole message list; there is no concurrency token,
    so the last writer wins.
    """

    def __init__(self) -> None:
        self.chats: dict[str, ChatRecord] = {}

    def _owned(self, chat_id: str, user_id: str) -> ChatRecord | None:
        record = self.chats.get(chat_id)
        if record is None or record.userId != user_id:
            return None
        return record

    async def exists(self, chat_id: str, user_id: str) -> bool:
        return self._owned(chat_id, user_id) is not None

    async def create(
        self,
        user_id: str,
        chat_id: str | None = None,
        initial_message: Message | None = None,
    ) -> str:
        if chat_id is not None and chat_id in self.chats:
            raise InvalidRequestError(f"Chat id already in use: {chat_id}")

        now = time.time()
        record = ChatRecord(
            id=chat_id or gen_id("chat"),
            userId=user_id,
            title=title_from_message(initial_message),
            messages=[initial_message.model_copy(deep=True)] if initial_message else [],
            createdAt=now,
            updatedAt=now,
        )
        self.chats[record.id] = record
        logger.info("Chat created: %s", record.id)
        return record.id

    async def load(self, chat_id: str, user_id: str) -> list[Message] | None:
        record = self._owned(chat_id, user_id)
        if record is None:
            return None
        return [m.model_copy(deep=True) for m in record.messages]

    async def save(self, chat_id: str, user_id: str, messages: Sequence[Message]) -> None:
        record = self._owned(chat_id, user_id)
        if record is None:
            raise NotFoundError("Chat", chat_id)

        if not record.messages and messages:
            first_user = next((m for m in messages if m.role == "user"), None)
            if first_user is not None:
                record.title = title_from_message(first_user)

        record.messages = [m.model_copy(deep=True) for m in messages]
        record.updatedAt = time.time()
        logger.debug("Saved %d messages to chat %s", len(messages), chat_id)

    def clear(self) -> None:
        self.chats.clear()
