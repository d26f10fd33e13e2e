"""
Chat client package.

Streams chat turns from the API into a local transcript.
"""

from .consumer import StreamConsumer, StreamHandlers
from .errors import ChatStreamError
from .session import ChatSession, TurnOptions
from .transcript import Transcript

__all__ = [
    "ChatSession",
    "ChatStreamError",
    "StreamConsumer",
    "StreamHandlers",
    "Transcript",
    "TurnOptions",
]
