"""
Model backend package.

Exports the Pydantic AI backend used to stream model responses.
"""
from .conversion import split_prompt, to_model_message
from .pydantic_ai_backend import PydanticAIBackend, create_backend

__all__ = [
    "PydanticAIBackend",
    "create_backend",
    "split_prompt",
    "to_model_message",
]
