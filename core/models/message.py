"""Message models."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .model_info import ModelDescriptor
from .part import Part, TextPart

Role = Literal["system", "user", "assistant"]


class MessageMetadata(BaseModel):
    """Persisted message metadata.

    Unknown keys are kept so that a stored transcript round-trips unchanged.
    """

    model_config = ConfigDict(extra="allow")

    createdAt: int | None = None
    model: ModelDescriptor | None = None
    totalTokens: int | None = None
    assistantDisplayName: str | None = None
    assistantImageUrl: str | None = None
    reasoningActive: bool | None = None


class Message(BaseModel):
    id: str
    role: Role
    parts: list[Part] = Field(default_factory=list)
    metadata: MessageMetadata | None = None

    def text(self) -> str:
        """Concatenated text of all ``text`` parts."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
