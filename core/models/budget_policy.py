"""BudgetPolicy model."""

from pydantic import BaseModel, ConfigDict

from config.defaults import (
    APPROX_CHARS_PER_TOKEN,
    CONTEXT_UTILIZATION,
    DEFAULT_CONTEXT_TOKENS,
    MIN_EFFECTIVE_TOKENS,
    RETRY_MIN_TAIL_MESSAGES,
)


class BudgetPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    maxChars: int
    minTailMessages: int = RETRY_MIN_TAIL_MESSAGES

    @classmethod
    def from_context_tokens(
        cls,
        context_tokens: int | None,
        min_tail_messages: int = RETRY_MIN_TAIL_MESSAGES,
    ) -> "BudgetPolicy":
        """Derive a character budget from a model's context window size."""
        effective = max(
            MIN_EFFECTIVE_TOKENS,
            int((context_tokens or DEFAULT_CONTEXT_TOKENS) * CONTEXT_UTILIZATION),
        )
        return cls(
            maxChars=effective * APPROX_CHARS_PER_TOKEN,
            minTailMessages=min_tail_messages,
        )
