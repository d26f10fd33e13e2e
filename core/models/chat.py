"""Chat record model."""

from pydantic import BaseModel, Field

from .message import Message

DEFAULT_CHAT_TITLE = "New Chat"


class ChatRecord(BaseModel):
    id: str
    userId: str
    title: str = DEFAULT_CHAT_TITLE
    messages: list[Message] = Field(default_factory=list)
    createdAt: float
    updatedAt: float
