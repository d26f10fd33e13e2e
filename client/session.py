"""
Chat session client.

Sends turns to the chat API over httpx and streams the response into a
local transcript. One exchange per chat is in flight at a time: starting
a turn cancels the previous one before any request is sent.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from core.cancellation import CancellationToken, TurnRegistry
from core.models import Message, MessageMetadata, ModelDescriptor, TextPart, gen_id
from core.protocol import iter_records

from .consumer import StreamConsumer, StreamHandlers, call_handler
from .errors import ChatStreamError
from .transcript import Transcript

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/v1/chat"
ABORT_PATH = "/api/v1/chat/{chat_id}/abort"
USER_ID_HEADER = "X-User-Id"
CHAT_ID_HEADER = "X-Chat-Id"

# Error code for a body that ended before `finish` or the end marker
INCOMPLETE_STREAM_CODE = "incomplete_stream"

# Registry key for a session whose chat has no id yet
NEW_CHAT_KEY = "__new__"


@dataclass
class TurnOptions:
    """Feature toggles sent with a turn."""

    enable_web_search: bool = False
    enable_image: bool = False
    enable_video: bool = False

    def to_body(self) -> dict[str, bool]:
        return {
            "enableWebSearch": self.enable_web_search,
            "enableImage": self.enable_image,
            "enableVideo": self.enable_video,
        }


class ChatSession:
    """
    Client side of one chat.

    Attributes:
        transcript: Messages shown to the user
        chat_id: Server chat id, set from the response once the chat exists
        model: Model selected by the user
        error: Error of the last failed turn, cleared when a turn starts
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_id: str,
        chat_id: str | None = None,
        model: ModelDescriptor | None = None,
        transcript: Transcript | None = None,
        handlers: StreamHandlers | None = None,
        turns: TurnRegistry | None = None,
    ) -> None:
        self.client = client
        self.user_id = user_id
        self.chat_id = chat_id
        self.model = model
        self.transcript = transcript or Transcript()
        self.handlers = handlers or StreamHandlers()
        self.error: ChatStreamError | None = None
        self.turns = turns or TurnRegistry()
        self._active_key: str | None = None
        self._failed_turn: tuple[str, TurnOptions, bool] | None = None

    @property
    def retryable(self) -> bool:
        return self.error is not None and self._failed_turn is not None

    @property
    def streaming(self) -> bool:
        return self._active_key is not None and self._active_key in self.turns

    @property
    def _turn_key(self) -> str:
        return self.chat_id or NEW_CHAT_KEY

    # -------------------------------------------------------------------------
    # Turns
    # -------------------------------------------------------------------------

    async def send_message(
        self,
        text: str,
        options: TurnOptions | None = None,
        auto_send: bool = False,
    ) -> Message | None:
        """
        Send one turn and stream the reply into the transcript.

        Args:
            text: User message text (ignored in auto-send mode)
            options: Feature toggles for the turn
            auto_send: Post the current transcript as-is instead of
                appending a new user message

        Returns:
            The assistant message, or None if the turn was aborted or failed
            (see ``error``)
        """
        options = options or TurnOptions()
        key = self._turn_key
        if self._active_key is not None and self._active_key != key:
            # The live turn was registered before the server assigned the chat id
            self.turns.abort(self._active_key)
        token = self.turns.begin(key)
        self._active_key = key
        self.error = None
        rollback_length = len(self.transcript)

        body: dict[str, Any] = {"modelId": self.model.id if self.model else None, **options.to_body()}
        if auto_send:
            body["messages"] = self.transcript.to_wire()
        else:
            user_message = self._user_message(text)
            self.transcript.append(user_message)
            if self.chat_id:
                body["message"] = user_message.to_wire()
            else:
                body["messages"] = self.transcript.to_wire()
        if self.chat_id:
            body["chatId"] = self.chat_id

        consumer = StreamConsumer(self.transcript, model=self.model, handlers=self.handlers)
        exchange = asyncio.ensure_future(self._exchange(body, consumer))
        token.add_callback(exchange.cancel)

        try:
            return await exchange
        except asyncio.CancelledError:
            if not token.cancelled:
                raise
            logger.info("Turn aborted for chat %s", self.chat_id or "(new)")
            return None
        except Exception as e:
            if isinstance(e, ChatStreamError):
                error = e
                logger.warning("Turn failed for chat %s: %s", self.chat_id or "(new)", e)
            else:
                error = ChatStreamError()
                logger.warning("Turn failed for chat %s", self.chat_id or "(new)", exc_info=True)
            self.transcript.truncate(rollback_length)
            self.error = error
            self._failed_turn = (text, options, auto_send)
            call_handler(self.handlers.on_error, error)
            return None
        finally:
            self.turns.end(key, token)
            if self._active_key == key and key not in self.turns:
                self._active_key = None

    async def retry(self) -> Message | None:
        """Resend the last failed turn."""
        if self._failed_turn is None:
            raise ChatStreamError("There is no failed message to retry")
        text, options, auto_send = self._failed_turn
        self._failed_turn = None
        return await self.send_message(text, options=options, auto_send=auto_send)

    async def stop(self) -> bool:
        """
        Abort the in-flight turn.

        Cancels the local read loop and asks the server to stop the turn.

        Returns:
            True if a turn was running
        """
        if self._active_key is None:
            return False
        token: CancellationToken | None = self.turns.get(self._active_key)
        if token is None or not token.cancel():
            return False
        if self.chat_id:
            try:
                await self.client.post(
                    ABORT_PATH.format(chat_id=self.chat_id),
                    headers={USER_ID_HEADER: self.user_id},
                )
            except httpx.HTTPError as e:
                logger.warning("Abort request for chat %s failed: %s", self.chat_id, e)
        return True

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _user_message(self, text: str) -> Message:
        return Message(
            id=gen_id("msg"),
            role="user",
            parts=[TextPart(text=text)],
            metadata=MessageMetadata(createdAt=int(time.time() * 1000), model=self.model),
        )

    async def _exchange(self, body: dict[str, Any], consumer: StreamConsumer) -> Message | None:
        headers = {USER_ID_HEADER: self.user_id, "Accept": "text/event-stream"}
        async with self.client.stream("POST", CHAT_PATH, json=body, headers=headers) as response:
            if response.status_code >= 400:
                await response.aread()
                raise ChatStreamError.from_response(response)

            chat_id = response.headers.get(CHAT_ID_HEADER)
            if chat_id and chat_id != self.chat_id:
                logger.debug("Chat id assigned: %s", chat_id)
                self.chat_id = chat_id

            records = iter_records(response.aiter_lines())
            reply = await consumer.consume(records)
            if not (records.completed or consumer.finished):
                raise ChatStreamError(code=INCOMPLETE_STREAM_CODE)
            return reply
