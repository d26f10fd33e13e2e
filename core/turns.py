"""
Turn preparation.

Builds the full conversation for a turn from the request and the stored
transcript, creating the chat on its first message.
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence

from .exceptions import InvalidRequestError, NotFoundError
from .models import Message
from .store import HistoryStore

logger = logging.getLogger(__name__)


@dataclass
class PreparedTurn:
    chat_id: str
    user_id: str
    messages: list[Message] = field(default_factory=list)


async def prepare_turn(
    store: HistoryStore,
    user_id: str,
    chat_id: str | None = None,
    message: Message | None = None,
    messages: Sequence[Message] | None = None,
) -> PreparedTurn:
    """
    Merge the incoming request onto the stored history.

    A single ``message`` with a ``chat_id`` is appended to that chat's
    history (the chat is created if it does not exist yet). A full
    ``messages`` list replaces the history; a new chat is created when no
    ``chat_id`` is given.

    Args:
        store: History store
        user_id: Requesting user
        chat_id: Target chat, if any
        message: Single new message
        messages: Full replacement history

    Returns:
        The chat id and the merged conversation

    Raises:
        InvalidRequestError: If neither form of request was supplied
        NotFoundError: If the chat exists but its history cannot be loaded
    """
    if message is not None and chat_id:
        if not await store.exists(chat_id, user_id):
            await store.create(user_id, chat_id=chat_id)
            return PreparedTurn(chat_id=chat_id, user_id=user_id, messages=[message])

        previous = await store.load(chat_id, user_id)
        if previous is None:
            raise NotFoundError("Chat", chat_id)
        logger.debug("Loaded %d messages for chat %s", len(previous), chat_id)
        return PreparedTurn(chat_id=chat_id, user_id=user_id, messages=[*previous, message])

    if messages:
        merged = list(messages)
        if not chat_id:
            chat_id = await store.create(user_id, initial_message=merged[0])
        elif not await store.exists(chat_id, user_id):
            await store.create(user_id, chat_id=chat_id)
        return PreparedTurn(chat_id=chat_id, user_id=user_id, messages=merged)

    raise InvalidRequestError("Messages or message with chatId are required")
