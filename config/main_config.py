"""Main Config model."""

from typing import Any

from pydantic import BaseModel, Field

from .defaults import (
    AVAILABLE_MODELS,
    DEFAULT_MODEL_NAME,
    DEFAULT_PROVIDER,
    MAX_CHARS_PER_MESSAGE,
    RETRY_MIN_TAIL_MESSAGES,
)


class ModelEntry(BaseModel):
    """A model offered by the catalog."""

    id: str
    name: str
    meta: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form model metadata (context window, profile image, ...)",
    )


class ChatConfig(BaseModel):
    """Turn production settings."""

    retry_min_tail_messages: int = Field(
        default=RETRY_MIN_TAIL_MESSAGES,
        ge=0,
        description="Messages always kept at the end of a trimmed retry payload",
    )
    max_chars_per_message: int = Field(
        default=MAX_CHARS_PER_MESSAGE,
        gt=0,
        description="Per-message text ceiling applied before trimming a retry payload",
    )
    system_prompt: str | None = Field(
        default=None,
        description="Instructions given to the model on every turn",
    )


class Config(BaseModel):
    """Main configuration model."""

    provider: str = Field(
        default=DEFAULT_PROVIDER,
        description="Provider prefix used when invoking models (e.g. openai, anthropic)",
    )
    default_model: str = Field(
        default=DEFAULT_MODEL_NAME,
        description="Model name used when a turn does not resolve to a known model",
    )
    models: list[ModelEntry] = Field(
        default_factory=lambda: [ModelEntry(**m) for m in AVAILABLE_MODELS],
        description="Models seeded into the catalog",
    )
    chat: ChatConfig = Field(
        default_factory=ChatConfig,
        description="Turn production settings",
    )
