"""
Tests for the event-stream wire protocol.
"""

import json

import pytest

from core.protocol import (
    DONE_MARKER,
    ErrorRecord,
    FinishRecord,
    ReasoningRecord,
    StartRecord,
    TextRecord,
    ToolInputAvailableRecord,
    ToolOutputAvailableRecord,
    decode_record,
    encode_record,
    iter_records,
    parse_sse_line,
    sse_data,
    sse_done,
)


async def lines_of(*lines: str):
    for line in lines:
        yield line


async def collect(lines):
    return [record async for record in iter_records(lines)]


class TestDecodeRecord:
    """Test tagged-union decoding."""

    def test_text_delta(self):
        """Test decoding a text delta."""
        record = decode_record('{"type": "text", "delta": "Hel"}')
        assert isinstance(record, TextRecord)
        assert record.delta == "Hel"
        assert record.text is None

    def test_dict_payload(self):
        """Test that already-parsed payloads are accepted."""
        record = decode_record({"type": "start", "id": "msg-1", "metadata": {"createdAt": 1}})
        assert isinstance(record, StartRecord)
        assert record.id == "msg-1"
        assert record.metadata == {"createdAt": 1}

    def test_tool_output(self):
        """Test decoding a tool output record."""
        record = decode_record(
            {"type": "tool-output-available", "toolCallId": "c1", "output": {"ok": True}}
        )
        assert isinstance(record, ToolOutputAvailableRecord)
        assert record.output == {"ok": True}
        assert "input" not in record.model_fields_set

    @pytest.mark.parametrize(
        "alias, expected",
        [
            ("response-start", StartRecord),
            ("text-delta", TextRecord),
            ("reasoning-delta", ReasoningRecord),
            ("reasoning-text", ReasoningRecord),
            ("response-end", FinishRecord),
            ("end", FinishRecord),
            ("done", FinishRecord),
        ],
    )
    def test_type_aliases(self, alias, expected):
        """Test alternate record type spellings."""
        assert isinstance(decode_record({"type": alias}), expected)

    def test_error_record_default_text(self):
        """Test that an error record without text gets a default."""
        record = decode_record({"type": "error"})
        assert isinstance(record, ErrorRecord)
        assert record.errorText == "Unknown error"

    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            "[1, 2]",
            '{"no": "type"}',
            '{"type": "mystery"}',
            '{"type": "tool-input-available", "input": {}}',
            '{"type": "text", "delta": 5}',
        ],
    )
    def test_malformed_records_skipped(self, payload):
        """Test that malformed or unknown records decode to None."""
        assert decode_record(payload) is None


class TestEncoding:
    """Test record encoding and SSE framing."""

    def test_encode_drops_unset_fields(self):
        """Test that None fields are not sent."""
        assert json.loads(encode_record(TextRecord(delta="hi"))) == {"type": "text", "delta": "hi"}

    def test_sse_data(self):
        """Test the sse-starlette event dict."""
        event = sse_data(FinishRecord(metadata={"totalTokens": 12}))
        assert json.loads(event["data"]) == {"type": "finish", "metadata": {"totalTokens": 12}}

    def test_sse_done(self):
        """Test the end-of-stream marker."""
        assert sse_done() == {"data": DONE_MARKER}

    def test_encode_then_decode_tool_input(self):
        """Test that a tool input record survives the wire."""
        record = ToolInputAvailableRecord(toolCallId="c9", toolName="search", input={"q": "x"})
        assert decode_record(encode_record(record)) == record

    @pytest.mark.parametrize(
        "line, expected",
        [
            ('data: {"type":"text"}', '{"type":"text"}'),
            ("data:[DONE]", "[DONE]"),
            ("data: x\r", "x"),
            (": ping", None),
            ("event: message", None),
            ("", None),
        ],
    )
    def test_parse_sse_line(self, line, expected):
        """Test extraction of data payloads."""
        assert parse_sse_line(line) == expected


class TestIterRecords:
    """Test decoding of a whole SSE body."""

    @pytest.mark.asyncio
    async def test_stops_at_done(self):
        """Test that records after the end-of-stream marker are ignored."""
        records = await collect(
            lines_of(
                'data: {"type": "start", "id": "m1"}',
                "",
                'data: {"type": "text", "delta": "Hi"}',
                "data: [DONE]",
                'data: {"type": "text", "delta": "late"}',
            )
        )
        assert [r.type for r in records] == ["start", "text"]

    @pytest.mark.asyncio
    async def test_skips_bad_records(self):
        """Test that one bad record does not abort the stream."""
        records = await collect(
            lines_of(
                ": ping - 2024-01-01",
                'data: {"type": "text", "delta": "a"}',
                "data: {broken",
                'data: {"type": "unknown-kind"}',
                'data: {"type": "text", "delta": "b"}',
            )
        )
        assert [r.delta for r in records] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_completed_flag(self):
        """Test that the reader reports whether the end-of-stream marker arrived."""
        finished = iter_records(lines_of('data: {"type": "text", "delta": "a"}', "data: [DONE]"))
        truncated = iter_records(lines_of('data: {"type": "text", "delta": "a"}'))

        assert [r.delta async for r in finished] == ["a"]
        assert [r.delta async for r in truncated] == ["a"]
        assert finished.completed is True
        assert truncated.completed is False
