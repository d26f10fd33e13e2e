"""ModelDescriptor and BackendHandle models."""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel


class ModelDescriptor(BaseModel):
    """Denormalized model identity stamped onto message metadata."""

    id: str
    name: str
    profile_image_url: str | None = None


@dataclass(frozen=True)
class BackendHandle:
    """Concrete target for a model backend invocation.

    Attributes:
        provider: Provider prefix understood by the backend (e.g. ``openai``)
        name: Provider-side model name
        model: Optional pre-built model object that takes precedence over
            the ``provider:name`` string
    """

    provider: str
    name: str
    model: Any = None

    @property
    def model_string(self) -> str:
        return f"{self.provider}:{self.name}"

    def target(self) -> Any:
        """Return what the backend should be pointed at."""
        return self.model if self.model is not None else self.model_string
