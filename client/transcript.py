"""
Client-side transcript.

A single-writer, in-memory log of the messages shown to the user. The
only mutations are append, replace-last, reset and truncate.
"""

from typing import Callable, Iterable

from core.models import Message


class Transcript:
    """Ordered list of chat messages owned by one session."""

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = list(messages)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def replace_last(self, fn: Callable[[Message], Message]) -> None:
        """Replace the newest message with ``fn(newest)``. No-op when empty."""
        if self._messages:
            self._messages[-1] = fn(self._messages[-1])

    def reset(self, messages: Iterable[Message] = ()) -> None:
        self._messages = list(messages)

    def truncate(self, length: int) -> None:
        """Drop every message after the first ``length``."""
        del self._messages[length:]

    def to_wire(self) -> list[dict]:
        return [m.to_wire() for m in self._messages]
