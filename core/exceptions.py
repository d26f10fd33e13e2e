"""
Core domain exceptions.

These exceptions are transport-agnostic and should be caught by the server
layer to convert into appropriate HTTP responses.
"""

from typing import Any

CONTEXT_LENGTH_ERROR_CODE = "context_length_exceeded"
CONTEXT_LENGTH_MARKERS = ("context length", "too many tokens", "maximum context")


class CoreError(Exception):
    """Base exception for all core errors."""

    pass


class NotFoundError(CoreError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class InvalidRequestError(CoreError):
    """Raised when a turn request is missing required fields."""

    pass


class ContextLengthExceededError(CoreError):
    """Raised when the trimmed retry is still rejected for its size."""

    code = CONTEXT_LENGTH_ERROR_CODE
    user_message = (
        "Your input exceeds the context window of this model. Please start a new "
        "chat, switch to a larger-context model, or shorten your message."
    )

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)


class StreamProtocolError(CoreError):
    """Raised when a stream carries an explicit error record."""

    pass


def _body_code(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    code = body.get("code")
    error = body.get("error")
    if not code and isinstance(error, dict):
        code = error.get("code")
    return str(code or "")


def is_context_length_error(exc: BaseException) -> bool:
    """
    Classify an upstream failure as a context-window overflow.

    Looks at an error ``code`` attribute, a structured ``body`` (as carried
    by provider HTTP errors), and well-known message fragments.

    Args:
        exc: The exception raised by the model backend

    Returns:
        True if the failure means the payload was too large
    """
    body = getattr(exc, "body", None)
    codes = (str(getattr(exc, "code", "") or ""), _body_code(body))
    if CONTEXT_LENGTH_ERROR_CODE in codes:
        return True

    haystack = str(exc).lower()
    if body is not None:
        haystack += " " + str(body).lower()
    return any(marker in haystack for marker in CONTEXT_LENGTH_MARKERS)
