"""
Chat turn production.

Runs one turn against a model backend and emits the event-stream protocol.
A context-length rejection before anything was emitted is retried once
with a trimmed, text-only payload. The stored transcript is always the
untrimmed history plus the new assistant message.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Protocol, Sequence

from config.defaults import (
    DEFAULT_ASSISTANT_IMAGE_URL,
    DEFAULT_ASSISTANT_NAME,
    MAX_CHARS_PER_MESSAGE,
    RETRY_MIN_TAIL_MESSAGES,
)

from .budget import filter_to_text_parts, trim_by_char_budget
from .cancellation import CancellationToken
from .exceptions import ContextLengthExceededError, StreamProtocolError, is_context_length_error
from .models import BackendHandle, BudgetPolicy, Message, MessageMetadata, ModelDescriptor, gen_id
from .protocol import ErrorRecord, FinishRecord, StartRecord, StreamRecord
from .reconciler import MessageAssembler
from .resolver import ResolvedModel
from .store import HistoryStore
from .turns import PreparedTurn

logger = logging.getLogger(__name__)

# Records buffered between the backend and the caller before the backend waits
BACKEND_QUEUE_SIZE = 64


class ModelBackend(Protocol):
    """Protocol for model backend implementations.

    ``stream`` yields protocol records (text, reasoning and tool records,
    optionally a final ``finish`` carrying usage metadata) and raises on
    failure.
    """

    def stream(self, handle: BackendHandle, messages: Sequence[Message]) -> AsyncIterator[StreamRecord]:
        ...


class TurnState(str, Enum):
    IDLE = "idle"
    LOADING_HISTORY = "loading-history"
    INVOKING_BACKEND = "invoking-backend"
    STREAMING = "streaming"
    CONTEXT_EXCEEDED = "context-exceeded"
    RETRYING = "retrying"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    FAILED = "failed"


def build_start_metadata(descriptor: ModelDescriptor | None) -> MessageMetadata:
    """Metadata attached to the ``start`` record of an assistant message."""
    now_ms = int(time.time() * 1000)
    if descriptor is None:
        return MessageMetadata(createdAt=now_ms)
    return MessageMetadata(
        createdAt=now_ms,
        model=descriptor,
        assistantDisplayName=descriptor.name or DEFAULT_ASSISTANT_NAME,
        assistantImageUrl=descriptor.profile_image_url or DEFAULT_ASSISTANT_IMAGE_URL,
    )


@dataclass
class _Failure:
    error: Exception


_END = object()
_CANCELLED = object()


class ChatProducer:
    """
    Drives a single turn.

    One instance per turn; ``state`` exposes where the turn currently is.
    """

    def __init__(
        self,
        store: HistoryStore,
        backend: ModelBackend,
        min_tail_messages: int = RETRY_MIN_TAIL_MESSAGES,
        max_chars_per_message: int = MAX_CHARS_PER_MESSAGE,
    ) -> None:
        self.store = store
        self.backend = backend
        self.min_tail_messages = min_tail_messages
        self.max_chars_per_message = max_chars_per_message
        self.state = TurnState.IDLE
        self.attempts = 0
        self.payloads: list[list[Message]] = []

    async def stream_turn(
        self,
        turn: PreparedTurn,
        resolved: ResolvedModel,
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[StreamRecord]:
        """
        Stream one turn as protocol records.

        Args:
            turn: Chat id, user and the full merged conversation
            resolved: Model resolved for this turn
            cancel: Optional token that stops the turn early

        Yields:
            ``start``, content records, then ``finish`` once the transcript
            has been persisted

        Raises:
            ContextLengthExceededError: If the trimmed retry is also too large
            Exception: Any other backend or store failure, unchanged
        """
        turn_start = time.perf_counter()
        self.state = TurnState.INVOKING_BACKEND
        budget = BudgetPolicy.from_context_tokens(resolved.context_tokens, self.min_tail_messages)
        assembler = MessageAssembler(
            message_id=gen_id("msg"),
            metadata=build_start_metadata(resolved.descriptor),
        )

        emitted = False
        try:
            async for record in self._attempt(turn, resolved, turn.messages, assembler, cancel):
                emitted = True
                yield record
        except Exception as exc:
            if emitted or not is_context_length_error(exc):
                self.state = TurnState.FAILED
                logger.error("Turn failed for chat %s: %s", turn.chat_id, exc)
                raise

            self.state = TurnState.CONTEXT_EXCEEDED
            payload = trim_by_char_budget(
                filter_to_text_parts(turn.messages, self.max_chars_per_message),
                budget.maxChars,
                budget.minTailMessages,
            )
            logger.warning(
                "Context window exceeded for chat %s; retrying with %d of %d messages (budget %d chars)",
                turn.chat_id,
                len(payload),
                len(turn.messages),
                budget.maxChars,
            )

            self.state = TurnState.RETRYING
            emitted = False
            try:
                async for record in self._attempt(turn, resolved, payload, assembler, cancel):
                    emitted = True
                    yield record
            except Exception as retry_exc:
                self.state = TurnState.FAILED
                if not emitted and is_context_length_error(retry_exc):
                    logger.error("Trimmed retry still exceeds the context window for chat %s", turn.chat_id)
                    raise ContextLengthExceededError() from retry_exc
                logger.error("Retry failed for chat %s: %s", turn.chat_id, retry_exc)
                raise

        logger.info(
            "Turn %s for chat %s (%d attempt(s), %.1fms)",
            self.state.value,
            turn.chat_id,
            self.attempts,
            (time.perf_counter() - turn_start) * 1000,
        )

    # -------------------------------------------------------------------------
    # Attempts
    # -------------------------------------------------------------------------

    async def _attempt(
        self,
        turn: PreparedTurn,
        resolved: ResolvedModel,
        payload: list[Message],
        assembler: MessageAssembler,
        cancel: CancellationToken | None,
    ) -> AsyncIterator[StreamRecord]:
        self.attempts += 1
        self.payloads.append(payload)
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=BACKEND_QUEUE_SIZE)
        pump = asyncio.create_task(self._pump(resolved.handle, payload, queue))
        started = False
        usage: dict[str, Any] | None = None

        try:
            while True:
                item = await self._next_item(queue, cancel)
                if item is _CANCELLED:
                    self.state = TurnState.CANCELLED
                    logger.info("Turn cancelled for chat %s", turn.chat_id)
                    if assembler.has_content():
                        await self._persist(turn, resolved, assembler)
                    return
                if item is _END:
                    break
                if isinstance(item, _Failure):
                    raise item.error

                record = item
                if isinstance(record, StartRecord):
                    continue
                if isinstance(record, FinishRecord):
                    usage = record.metadata
                    continue
                if isinstance(record, ErrorRecord):
                    raise StreamProtocolError(record.errorText)

                if not started:
                    started = True
                    self.state = TurnState.STREAMING
                    yield self._start_record(assembler)
                assembler.apply(record)
                yield record
        finally:
            if not pump.done():
                pump.cancel()
                try:
                    await pump
                except asyncio.CancelledError:
                    pass

        if not started:
            yield self._start_record(assembler)

        finish = FinishRecord(metadata=self._finish_metadata(usage))
        assembler.apply(finish)
        await self._persist(turn, resolved, assembler)
        self.state = TurnState.FINISHED
        yield finish

    async def _pump(
        self, handle: BackendHandle, payload: list[Message], queue: "asyncio.Queue[Any]"
    ) -> None:
        """Move backend records onto ``queue``; failures are handed over, not raised here."""
        try:
            async for record in self.backend.stream(handle, payload):
                await queue.put(record)
        except Exception as exc:
            await queue.put(_Failure(exc))
        else:
            await queue.put(_END)

    @staticmethod
    async def _next_item(queue: "asyncio.Queue[Any]", cancel: CancellationToken | None) -> Any:
        if cancel is None:
            return await queue.get()
        if cancel.cancelled:
            return _CANCELLED

        get_task = asyncio.ensure_future(queue.get())
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {get_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (get_task, cancel_task):
                if not task.done():
                    task.cancel()
        if get_task in done:
            return get_task.result()
        return _CANCELLED

    # -------------------------------------------------------------------------
    # Records and persistence
    # -------------------------------------------------------------------------

    @staticmethod
    def _start_record(assembler: MessageAssembler) -> StartRecord:
        metadata = assembler.message.metadata
        return StartRecord(
            id=assembler.message.id,
            metadata=metadata.model_dump(exclude_none=True) if metadata else None,
        )

    @staticmethod
    def _finish_metadata(usage: dict[str, Any] | None) -> dict[str, Any] | None:
        if not usage:
            return None
        total = usage.get("totalTokens")
        return {"totalTokens": total} if total is not None else None

    async def _persist(
        self, turn: PreparedTurn, resolved: ResolvedModel, assembler: MessageAssembler
    ) -> None:
        """Store the untrimmed conversation plus the stamped assistant message."""
        assistant = assembler.snapshot()
        metadata = assistant.metadata or MessageMetadata()
        descriptor = resolved.descriptor
        metadata.model = descriptor
        metadata.assistantDisplayName = descriptor.name
        metadata.assistantImageUrl = descriptor.profile_image_url or metadata.assistantImageUrl
        assistant.metadata = metadata

        await self.store.save(turn.chat_id, turn.user_id, [*turn.messages, assistant])
        logger.debug(
            "Persisted %d messages for chat %s", len(turn.messages) + 1, turn.chat_id
        )
