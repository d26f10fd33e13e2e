"""
Conversion of stored messages into Pydantic AI message history.
"""
from typing import Sequence

from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)

from core.models import Message


def to_model_message(message: Message) -> ModelMessage | None:
    """Convert one message; messages without text are skipped."""
    text = message.text()
    if not text:
        return None
    if message.role == "system":
        return ModelRequest(parts=[SystemPromptPart(content=text)])
    if message.role == "user":
        return ModelRequest(parts=[UserPromptPart(content=text)])
    return ModelResponse(parts=[TextPart(content=text)])


def split_prompt(messages: Sequence[Message]) -> tuple[str | None, list[ModelMessage]]:
    """
    Split a conversation into the prompt for this run and the prior history.

    The newest message becomes the prompt when it is a user message;
    otherwise the whole conversation is history.
    """
    prompt: str | None = None
    prior = list(messages)
    if prior and prior[-1].role == "user":
        prompt = prior.pop().text()

    history: list[ModelMessage] = []
    for message in prior:
        converted = to_model_message(message)
        if converted is not None:
            history.append(converted)
    return prompt, history
