"""
Shared pytest fixtures for all tests.
"""
import asyncio
from typing import Any, AsyncIterator, Callable, Iterator, Sequence

import pytest

from config import get_config
from core import InMemoryHistoryStore, Message, MessageMetadata, TextPart, gen_id
from core.models import BackendHandle
from core.protocol import StreamRecord, TextRecord


def make_message(role: str, text: str, message_id: str | None = None, **metadata: Any) -> Message:
    """Build a message with a single text part."""
    return Message(
        id=message_id or gen_id("msg"),
        role=role,
        parts=[TextPart(text=text)],
        metadata=MessageMetadata(**metadata) if metadata else None,
    )


class ContextLengthError(Exception):
    """Provider-style error carrying the context-length code."""

    code = "context_length_exceeded"


class ScriptedBackend:
    """Model backend that replays one script per call.

    Each script is either an exception to raise before streaming or a list
    of records to yield. When ``gate`` is set, the backend waits on it after
    yielding ``gate_after`` records.
    """

    def __init__(
        self,
        *scripts: Exception | Sequence[StreamRecord],
        gate: asyncio.Event | None = None,
        gate_after: int = 1,
    ) -> None:
        self.scripts = list(scripts)
        self.calls: list[tuple[BackendHandle, list[Message]]] = []
        self.gate = gate
        self.gate_after = gate_after

    async def stream(self, handle: BackendHandle, messages: Sequence[Message]) -> AsyncIterator[StreamRecord]:
        self.calls.append((handle, list(messages)))
        script = self.scripts[min(len(self.calls), len(self.scripts)) - 1]
        if isinstance(script, Exception):
            raise script
        for index, record in enumerate(script):
            if self.gate is not None and index == self.gate_after:
                await self.gate.wait()
            if isinstance(record, Exception):
                raise record
            yield record


class OverflowBackend:
    """Rejects payloads whose text exceeds ``limit`` characters, otherwise replies."""

    def __init__(self, limit: int, reply: str = "Short answer.") -> None:
        self.limit = limit
        self.reply = reply
        self.calls: list[list[Message]] = []

    async def stream(self, handle: BackendHandle, messages: Sequence[Message]) -> AsyncIterator[StreamRecord]:
        self.calls.append(list(messages))
        size = sum(len(m.text()) for m in messages)
        if size > self.limit:
            raise ContextLengthError(f"This model's maximum context length was exceeded ({size} chars)")
        yield TextRecord(delta=self.reply)


@pytest.fixture
def message_factory() -> Callable[..., Message]:
    """Factory for single-text-part messages."""
    return make_message


@pytest.fixture
def store() -> InMemoryHistoryStore:
    """Fresh in-memory history store."""
    return InMemoryHistoryStore()


@pytest.fixture(autouse=True)
def clear_config_cache(monkeypatch) -> Iterator[None]:
    """Keep environment overrides and cached config from leaking between tests."""
    monkeypatch.delenv("CHATSTREAM_DEFAULT_MODEL", raising=False)
    monkeypatch.delenv("CHATSTREAM_PROVIDER", raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()
