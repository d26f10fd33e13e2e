"""Part models."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Tag

from .tool_state import ToolCallState

TOOL_PART_PREFIX = "tool-"


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str = ""


class ReasoningPart(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str = ""


class ToolPart(BaseModel):
    """One tool invocation inside an assistant message, keyed by ``toolCallId``."""

    type: str
    toolCallId: str
    state: ToolCallState = "input-streaming"
    input: Any = None
    output: Any = None
    errorText: str | None = None
    inputText: str | None = None

    @property
    def tool_name(self) -> str:
        return self.type[len(TOOL_PART_PREFIX):]

    @classmethod
    def for_tool(cls, tool_name: str, tool_call_id: str, **kwargs: Any) -> "ToolPart":
        return cls(type=f"{TOOL_PART_PREFIX}{tool_name}", toolCallId=tool_call_id, **kwargs)


class OtherPart(BaseModel):
    """Any part type this service does not interpret (files, step markers, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str


def _part_tag(value: Any) -> str:
    if isinstance(value, dict):
        kind = value.get("type")
    else:
        kind = getattr(value, "type", None)
    if kind in ("text", "reasoning"):
        return kind
    if isinstance(kind, str) and kind.startswith(TOOL_PART_PREFIX):
        return "tool"
    return "other"


Part = Annotated[
    Union[
        Annotated[TextPart, Tag("text")],
        Annotated[ReasoningPart, Tag("reasoning")],
        Annotated[ToolPart, Tag("tool")],
        Annotated[OtherPart, Tag("other")],
    ],
    Discriminator(_part_tag),
]
