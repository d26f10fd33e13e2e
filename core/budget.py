"""
History budgeting.

Fits a conversation into a character budget before it is sent to a model
backend. Only whole messages are ever dropped; the text of a message is
never cut by the trimmer itself.
"""

import logging
from typing import Sequence

from config.defaults import MAX_CHARS_PER_MESSAGE

from .models import Message, TextPart

logger = logging.getLogger(__name__)


def count_text_chars(messages: Sequence[Message]) -> int:
    """Sum the length of all ``text`` parts across messages."""
    return sum(len(m.text()) for m in messages)


def filter_to_text_parts(
    messages: Sequence[Message], max_chars_per_message: int = MAX_CHARS_PER_MESSAGE
) -> list[Message]:
    """
    Reduce messages to their text parts, capping each message's text.

    Non-text parts are dropped and the concatenated text of a message is
    limited to ``max_chars_per_message`` characters. Messages left with no
    parts are removed.

    Args:
        messages: Messages to filter
        max_chars_per_message: Ceiling on each message's total text

    Returns:
        New message objects; the input is not modified
    """
    filtered: list[Message] = []
    for message in messages:
        remaining = max_chars_per_message
        parts: list[TextPart] = []
        for part in message.parts:
            if not isinstance(part, TextPart):
                continue
            text = part.text[: max(remaining, 0)]
            remaining -= len(text)
            parts.append(TextPart(text=text))
        if parts:
            filtered.append(message.model_copy(update={"parts": parts}))
    return filtered


def trim_by_char_budget(
    messages: Sequence[Message], max_chars: int, min_tail_messages: int
) -> list[Message]:
    """
    Keep as much recent history as fits in ``max_chars`` characters.

    The first system message is always kept. The newest ``min_tail_messages``
    other messages form the tail: they are admitted newest-first until one
    would push the total over budget. Older messages are then re-admitted
    newest-first, stopping at the first that does not fit. The newest
    message is kept even when it alone exceeds the budget.

    Args:
        messages: Conversation in chronological order
        max_chars: Character ceiling for system + kept messages
        min_tail_messages: Size of the preferentially kept tail

    Returns:
        An order-preserving subsequence of ``messages``
    """
    if not messages:
        return []

    system = next((m for m in messages if m.role == "system"), None)
    rest = [m for m in messages if m is not system]
    base = len(system.text()) if system is not None else 0

    tail_size = min(max(min_tail_messages, 0), len(rest))
    tail = rest[len(rest) - tail_size:] if tail_size else []
    head = rest[: len(rest) - tail_size]

    kept: list[Message] = []
    total = base
    for message in reversed(tail):
        size = len(message.text())
        if total + size > max_chars and kept:
            break
        kept.insert(0, message)
        total += size
        if total > max_chars:
            # The newest message alone is over budget; nothing else can join it.
            break

    if not kept and head:
        # No tail at all (min_tail_messages == 0); the newest head message stands in.
        kept.insert(0, head.pop())
        total += len(kept[0].text())

    for message in reversed(head):
        size = len(message.text())
        if total + size > max_chars:
            break
        kept.insert(0, message)
        total += size

    dropped = len(rest) - len(kept)
    if dropped:
        logger.debug(
            "Trimmed %d of %d messages to fit %d chars (kept %d chars)",
            dropped,
            len(rest),
            max_chars,
            total,
        )
    return ([system] if system is not None else []) + kept
