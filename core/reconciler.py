"""
Stream reconciliation.

Folds a sequence of stream records into a single assistant message. The
same assembler is used by the producer (to build the message it persists)
and by the consumer (to mirror it in the local transcript).
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from .models import (
    Message,
    MessageMetadata,
    ReasoningPart,
    TextPart,
    ToolPart,
    can_transition,
    gen_id,
)
from .protocol import (
    FinishRecord,
    ReasoningEndRecord,
    ReasoningRecord,
    ReasoningStartRecord,
    StartRecord,
    StreamRecord,
    TextRecord,
    ToolInputAvailableRecord,
    ToolInputDeltaRecord,
    ToolInputErrorRecord,
    ToolInputStartRecord,
    ToolOutputAvailableRecord,
    ToolRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_TOOL_ERROR_TEXT = "Tool error"

TOOL_RECORD_STATES: dict[str, str] = {
    "tool-input-start": "input-streaming",
    "tool-input-delta": "input-streaming",
    "tool-input-available": "input-available",
    "tool-output-available": "output-available",
    "tool-input-error": "output-error",
}


def non_overlapping_suffix(existing: str, delta: str) -> str:
    """
    Return the part of ``delta`` not already present at the end of ``existing``.

    Finds the longest suffix of ``existing`` that is a prefix of ``delta``
    and drops it, so a resent fragment is not duplicated.
    """
    if not delta:
        return ""
    for k in range(min(len(existing), len(delta)), 0, -1):
        if existing.endswith(delta[:k]):
            return delta[k:]
    return delta


@dataclass
class TextAccumulator:
    """Snapshot-or-delta accumulator for one streamed field.

    Once a snapshot has been applied, deltas are ignored for the rest of
    the turn.
    """

    value: str = ""
    saw_snapshot: bool = False

    def apply_snapshot(self, text: str) -> bool:
        changed = text != self.value
        self.value = text
        self.saw_snapshot = True
        return changed

    def apply_delta(self, delta: str) -> str:
        """Merge a delta and return what was actually appended."""
        if self.saw_snapshot:
            return ""
        append = non_overlapping_suffix(self.value, delta)
        self.value += append
        return append

    def apply(self, text: str | None, delta: str | None) -> bool:
        if text is not None:
            return self.apply_snapshot(text)
        if delta is not None:
            return bool(self.apply_delta(delta))
        return False

    def reset(self) -> None:
        self.value = ""
        self.saw_snapshot = False


class MessageAssembler:
    """
    Builds one assistant message from stream records.

    Part order is: reasoning (once seen), text, then tool calls in order of
    first sighting of their ``toolCallId``.
    """

    def __init__(
        self,
        message_id: str | None = None,
        metadata: MessageMetadata | None = None,
    ) -> None:
        self.text = TextAccumulator()
        self.reasoning = TextAccumulator()
        self._text_part = TextPart(text="")
        self._reasoning_part: ReasoningPart | None = None
        self._tools: OrderedDict[str, ToolPart] = OrderedDict()
        self.finished = False
        self.message = Message(
            id=message_id or gen_id("msg"),
            role="assistant",
            parts=[self._text_part],
            metadata=metadata or MessageMetadata(createdAt=int(time.time() * 1000)),
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def tool_parts(self) -> list[ToolPart]:
        return list(self._tools.values())

    def has_content(self) -> bool:
        return bool(self.text.value or self.reasoning.value or self._tools)

    def snapshot(self) -> Message:
        """Return an independent copy of the message as it stands."""
        return self.message.model_copy(deep=True)

    def merge_metadata(self, values: dict[str, Any] | None) -> None:
        if not values:
            return
        current = self.message.metadata.model_dump(exclude_none=True) if self.message.metadata else {}
        self.message.metadata = MessageMetadata.model_validate({**current, **values})

    def apply(self, record: StreamRecord) -> bool:
        """
        Fold one record into the message.

        Returns:
            True if the message changed
        """
        if isinstance(record, StartRecord):
            if record.id:
                self.message.id = record.id
            self.merge_metadata(record.metadata)
            return True
        if isinstance(record, TextRecord):
            changed = self.text.apply(record.text, record.delta)
            self._text_part.text = self.text.value
            return changed
        if isinstance(record, (ReasoningStartRecord, ReasoningRecord, ReasoningEndRecord)):
            return self._apply_reasoning(record)
        if isinstance(record, TOOL_RECORD_TYPES):
            return self._apply_tool(record)
        if isinstance(record, FinishRecord):
            self.finished = True
            self.merge_metadata(record.metadata)
            if self.message.metadata and self.message.metadata.reasoningActive:
                self.message.metadata.reasoningActive = False
            return True
        return False

    # -------------------------------------------------------------------------
    # Reasoning
    # -------------------------------------------------------------------------

    def _ensure_reasoning_part(self) -> ReasoningPart:
        if self._reasoning_part is None:
            self._reasoning_part = ReasoningPart(text=self.reasoning.value)
            self._rebuild_parts()
        return self._reasoning_part

    def _set_reasoning_active(self, active: bool) -> None:
        if self.message.metadata is None:
            self.message.metadata = MessageMetadata()
        self.message.metadata.reasoningActive = active

    def _apply_reasoning(self, record: StreamRecord) -> bool:
        part = self._ensure_reasoning_part()
        self._set_reasoning_active(not isinstance(record, ReasoningEndRecord))
        if isinstance(record, ReasoningRecord):
            self.reasoning.apply(record.text, record.delta)
            part.text = self.reasoning.value
        return True

    # -------------------------------------------------------------------------
    # Tool calls
    # -------------------------------------------------------------------------

    def _apply_tool(self, record: ToolRecord) -> bool:
        target = TOOL_RECORD_STATES[record.type]
        part = self._tools.get(record.toolCallId)
        if part is None:
            part = ToolPart.for_tool(record.toolName or "", record.toolCallId, state=target)
            self._tools[record.toolCallId] = part
            self._fill_tool_part(part, record)
            self._rebuild_parts()
            return True

        if not can_transition(part.state, target):
            logger.debug(
                "Ignoring %s for tool call %s in state %s",
                record.type,
                record.toolCallId,
                part.state,
            )
            return False

        part.state = target
        self._fill_tool_part(part, record)
        return True

    @staticmethod
    def _fill_tool_part(part: ToolPart, record: ToolRecord) -> None:
        if record.toolName and record.type != "tool-input-delta":
            part.type = f"tool-{record.toolName}"

        if isinstance(record, ToolInputDeltaRecord):
            if record.delta:
                part.inputText = (part.inputText or "") + record.delta
        elif isinstance(record, ToolInputAvailableRecord):
            part.input = record.input
        elif isinstance(record, ToolOutputAvailableRecord):
            part.output = record.output
            if part.input is None and "input" in record.model_fields_set:
                part.input = record.input
        elif isinstance(record, ToolInputErrorRecord):
            part.errorText = record.errorText or DEFAULT_TOOL_ERROR_TEXT
            if "input" in record.model_fields_set:
                part.input = record.input

    def _rebuild_parts(self) -> None:
        parts: list[Any] = []
        if self._reasoning_part is not None:
            parts.append(self._reasoning_part)
        parts.append(self._text_part)
        parts.extend(self._tools.values())
        self.message.parts = parts


TOOL_RECORD_TYPES = (
    ToolInputStartRecord,
    ToolInputDeltaRecord,
    ToolInputAvailableRecord,
    ToolOutputAvailableRecord,
    ToolInputErrorRecord,
)
