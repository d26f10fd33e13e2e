"""
Cancellation primitives.

A CancellationToken belongs to exactly one exchange. A TurnRegistry keeps
at most one live token per chat id; beginning a new turn cancels the
previous one first.
"""

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """Idempotent cancel signal for one in-flight exchange."""

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """
        Trigger cancellation.

        Returns:
            False if the token was already cancelled (no-op), True otherwise
        """
        if self._event.is_set():
            return False
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed for %s", self.label or "token")
        logger.debug("Cancelled %s", self.label or "token")
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on cancellation (immediately if already cancelled)."""
        if self._event.is_set():
            callback()
        else:
            self._callbacks.append(callback)

    async def wait(self) -> None:
        await self._event.wait()


class TurnRegistry:
    """Single-flight bookkeeping of in-progress turns keyed by chat id."""

    def __init__(self) -> None:
        self._active: dict[str, CancellationToken] = {}

    def begin(self, chat_id: str) -> CancellationToken:
        """Cancel any live turn for ``chat_id`` and register a fresh token."""
        previous = self._active.get(chat_id)
        if previous is not None and previous.cancel():
            logger.info("Superseded in-flight turn for chat %s", chat_id)
        token = CancellationToken(label=f"turn:{chat_id}")
        self._active[chat_id] = token
        return token

    def end(self, chat_id: str, token: CancellationToken) -> None:
        """Forget ``token`` if it is still the live one for ``chat_id``."""
        if self._active.get(chat_id) is token:
            del self._active[chat_id]

    def abort(self, chat_id: str) -> bool:
        """Cancel the live turn for ``chat_id``; returns whether one was cancelled."""
        token = self._active.pop(chat_id, None)
        return token.cancel() if token is not None else False

    def get(self, chat_id: str) -> CancellationToken | None:
        return self._active.get(chat_id)

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, chat_id: str) -> bool:
        return chat_id in self._active

    def clear(self) -> None:
        for token in self._active.values():
            token.cancel()
        self._active.clear()
