"""
Stream consumer.

Applies event-stream records, in arrival order, to a Transcript. The
assistant message under construction is always the transcript's last
message; each record replaces it with the updated version.
"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, Callable, Optional

from config.defaults import DEFAULT_ASSISTANT_IMAGE_URL, DEFAULT_ASSISTANT_NAME
from core.models import Message, MessageMetadata, ModelDescriptor
from core.protocol import ErrorRecord, FinishRecord, StartRecord, StreamRecord, TextRecord
from core.reconciler import MessageAssembler

from .errors import ChatStreamError
from .transcript import Transcript

logger = logging.getLogger(__name__)


@dataclass
class StreamHandlers:
    """Optional callbacks fired while a response streams in.

    Attributes:
        on_start: Called with the new assistant message
        on_delta: Called with the appended text and the full text so far
        on_finish: Called with the final text once the server has persisted
            the transcript
        on_error: Called with the error of a failed exchange
    """

    on_start: Optional[Callable[[Message], Any]] = None
    on_delta: Optional[Callable[[str, str], Any]] = None
    on_finish: Optional[Callable[[str], Any]] = None
    on_error: Optional[Callable[[Exception], Any]] = None


def call_handler(handler: Optional[Callable[..., Any]], *args: Any) -> None:
    """Invoke a user handler; its failures are logged, never raised."""
    if handler is None:
        return
    try:
        handler(*args)
    except Exception:
        logger.exception("Stream handler %s failed", getattr(handler, "__name__", handler))


class StreamConsumer:
    """Folds one exchange's records into a transcript."""

    def __init__(
        self,
        transcript: Transcript,
        model: ModelDescriptor | None = None,
        handlers: StreamHandlers | None = None,
    ) -> None:
        self.transcript = transcript
        self.model = model
        self.handlers = handlers or StreamHandlers()
        self.assembler: MessageAssembler | None = None

    @property
    def finished(self) -> bool:
        return self.assembler is not None and self.assembler.finished

    async def consume(self, records: AsyncIterable[StreamRecord]) -> Message | None:
        """
        Read records until the stream ends.

        Returns:
            The assistant message, or None if the stream carried no records

        Raises:
            ChatStreamError: If the stream carries an ``error`` record
        """
        async for record in records:
            self.apply(record)
        return self.transcript.last if self.assembler is not None else None

    def apply(self, record: StreamRecord) -> None:
        if isinstance(record, ErrorRecord):
            raise ChatStreamError(record.errorText)

        if isinstance(record, StartRecord):
            self._begin(record)
            return

        if self.assembler is None:
            # Content before any start record: open a message implicitly
            self._begin(None)

        assembler = self.assembler
        before = assembler.text.value
        if not assembler.apply(record):
            return
        self._publish()

        if isinstance(record, TextRecord):
            full = assembler.text.value
            appended = full[len(before):] if full.startswith(before) else full
            if appended:
                call_handler(self.handlers.on_delta, appended, full)
        elif isinstance(record, FinishRecord):
            call_handler(self.handlers.on_finish, assembler.text.value)

    def _begin(self, record: StartRecord | None) -> None:
        """Append a fresh assistant message and reset per-turn accumulators."""
        self.assembler = MessageAssembler()
        if record is not None:
            self.assembler.apply(record)
        self._fill_display_fields(self.assembler.message.metadata)
        self.transcript.append(self.assembler.snapshot())
        call_handler(self.handlers.on_start, self.assembler.snapshot())

    def _fill_display_fields(self, metadata: MessageMetadata | None) -> None:
        if metadata is None:
            return
        if metadata.model is None and self.model is not None:
            metadata.model = self.model
        if not metadata.assistantDisplayName:
            metadata.assistantDisplayName = (self.model.name if self.model else None) or DEFAULT_ASSISTANT_NAME
        if not metadata.assistantImageUrl:
            metadata.assistantImageUrl = (
                self.model.profile_image_url if self.model else None
            ) or DEFAULT_ASSISTANT_IMAGE_URL

    def _publish(self) -> None:
        snapshot = self.assembler.snapshot()
        self.transcript.replace_last(lambda _: snapshot)
