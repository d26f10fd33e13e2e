"""
Event-stream wire protocol.

One exchange is a sequence of JSON records sent as SSE ``data:`` lines and
terminated by ``data: [DONE]``. Records are decoded through a closed
tagged union on ``type``; anything that does not decode is skipped rather
than failing the stream.
"""

import json
import logging
from typing import Annotated, Any, AsyncIterable, AsyncIterator, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"
SSE_DATA_PREFIX = "data:"

# Alternate spellings emitted by some producers
TYPE_ALIASES: dict[str, str] = {
    "response-start": "start",
    "text-delta": "text",
    "reasoning-delta": "reasoning",
    "reasoning-text": "reasoning",
    "response-end": "finish",
    "end": "finish",
    "done": "finish",
}


# =============================================================================
# Record types
# =============================================================================


class StartRecord(BaseModel):
    type: Literal["start"] = "start"
    id: str | None = None
    metadata: dict[str, Any] | None = None


class TextRecord(BaseModel):
    type: Literal["text"] = "text"
    id: str | None = None
    text: str | None = None
    delta: str | None = None


class ReasoningStartRecord(BaseModel):
    type: Literal["reasoning-start"] = "reasoning-start"
    id: str | None = None


class ReasoningRecord(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    id: str | None = None
    text: str | None = None
    delta: str | None = None


class ReasoningEndRecord(BaseModel):
    type: Literal["reasoning-end"] = "reasoning-end"
    id: str | None = None


class ToolInputStartRecord(BaseModel):
    type: Literal["tool-input-start"] = "tool-input-start"
    toolCallId: str
    toolName: str | None = None


class ToolInputDeltaRecord(BaseModel):
    type: Literal["tool-input-delta"] = "tool-input-delta"
    toolCallId: str
    toolName: str | None = None
    delta: str | None = None


class ToolInputAvailableRecord(BaseModel):
    type: Literal["tool-input-available"] = "tool-input-available"
    toolCallId: str
    toolName: str | None = None
    input: Any = None


class ToolOutputAvailableRecord(BaseModel):
    type: Literal["tool-output-available"] = "tool-output-available"
    toolCallId: str
    toolName: str | None = None
    input: Any = None
    output: Any = None


class ToolInputErrorRecord(BaseModel):
    type: Literal["tool-input-error"] = "tool-input-error"
    toolCallId: str
    toolName: str | None = None
    input: Any = None
    errorText: str | None = None


class FinishRecord(BaseModel):
    type: Literal["finish"] = "finish"
    metadata: dict[str, Any] | None = None


class ErrorRecord(BaseModel):
    type: Literal["error"] = "error"
    errorText: str = "Unknown error"


StreamRecord = Annotated[
    Union[
        StartRecord,
        TextRecord,
        ReasoningStartRecord,
        ReasoningRecord,
        ReasoningEndRecord,
        ToolInputStartRecord,
        ToolInputDeltaRecord,
        ToolInputAvailableRecord,
        ToolOutputAvailableRecord,
        ToolInputErrorRecord,
        FinishRecord,
        ErrorRecord,
    ],
    Field(discriminator="type"),
]

ToolRecord = Union[
    ToolInputStartRecord,
    ToolInputDeltaRecord,
    ToolInputAvailableRecord,
    ToolOutputAvailableRecord,
    ToolInputErrorRecord,
]

_record_adapter = TypeAdapter(StreamRecord)


# =============================================================================
# Encoding / decoding
# =============================================================================


def encode_record(record: BaseModel) -> str:
    """Serialize a record to its JSON wire form."""
    return record.model_dump_json(exclude_none=True)


def decode_record(payload: str | dict[str, Any]) -> StreamRecord | None:
    """
    Decode one record.

    Args:
        payload: JSON text or an already-parsed dict

    Returns:
        The typed record, or None when the payload is malformed or of an
        unknown type
    """
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON record: %.80s", payload)
            return None
    if not isinstance(payload, dict):
        return None

    kind = payload.get("type")
    if kind in TYPE_ALIASES:
        payload = {**payload, "type": TYPE_ALIASES[kind]}
    try:
        return _record_adapter.validate_python(payload)
    except ValidationError:
        logger.debug("Skipping unrecognized record of type %r", kind)
        return None


def sse_data(record: BaseModel) -> dict[str, str]:
    """Wrap a record for an sse-starlette ``EventSourceResponse``."""
    return {"data": encode_record(record)}


def sse_done() -> dict[str, str]:
    return {"data": DONE_MARKER}


def parse_sse_line(line: str) -> str | None:
    """Return the payload of an SSE ``data:`` line, or None for other lines."""
    line = line.rstrip("\r")
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    return line[len(SSE_DATA_PREFIX):].strip()


class RecordReader:
    """
    Decodes records from SSE lines until the end-of-stream marker.

    Comment lines (pings), event names and malformed payloads are skipped.
    ``completed`` is set once the ``[DONE]`` marker has been read, so a
    caller can tell a finished stream from a truncated body.
    """

    def __init__(self, lines: AsyncIterable[str]) -> None:
        self._lines = lines
        self.completed = False

    def __aiter__(self) -> AsyncIterator[StreamRecord]:
        return self._read()

    async def _read(self) -> AsyncIterator[StreamRecord]:
        async for line in self._lines:
            data = parse_sse_line(line)
            if not data:
                continue
            if data == DONE_MARKER:
                self.completed = True
                return
            record = decode_record(data)
            if record is not None:
                yield record


def iter_records(lines: AsyncIterable[str]) -> RecordReader:
    return RecordReader(lines)
