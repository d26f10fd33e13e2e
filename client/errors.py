"""Client-side errors."""

from typing import Any

import httpx

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class ChatStreamError(Exception):
    """A chat exchange failed.

    Attributes:
        status: HTTP status when the server rejected the request
        code: Machine-readable error code, if the server sent one
    """

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ChatStreamError":
        """Build an error from a non-2xx response that has been read."""
        message = GENERIC_ERROR_MESSAGE
        code = None
        try:
            body: Any = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            detail = body.get("message") or body.get("detail")
            if isinstance(detail, str) and detail:
                message = detail
        return cls(message, status=response.status_code, code=code)
