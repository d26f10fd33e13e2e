"""ChatRequest model."""

from pydantic import BaseModel

from core import Message


class ChatRequest(BaseModel):
    """Body of a chat turn.

    Either ``message`` together with ``chatId`` (appended to the stored
    history) or ``messages`` (full replacement of the history).
    """

    message: Message | None = None
    messages: list[Message] | None = None
    chatId: str | None = None
    modelId: str | None = None
    enableWebSearch: bool = False
    enableImage: bool = False
    enableVideo: bool = False
