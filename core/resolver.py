"""
Model resolution.

Turns a requested model id, or the model recorded on earlier messages, into
a display descriptor, a backend handle, and the model's context window size.
Resolution never fails a turn: every miss degrades to the next fallback.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

from config.defaults import (
    AVAILABLE_MODELS,
    CONTEXT_WINDOW_DETAIL_KEYS,
    CONTEXT_WINDOW_KEYS,
    DEFAULT_PROVIDER,
)

from .models import BackendHandle, Message, ModelDescriptor

logger = logging.getLogger(__name__)


@dataclass
class ModelRecord:
    """A model as known to the catalog."""

    id: str
    name: str
    meta: dict[str, Any] = field(default_factory=dict)

    def descriptor(self) -> ModelDescriptor:
        return ModelDescriptor(
            id=self.id,
            name=self.name,
            profile_image_url=self.meta.get("profile_image_url"),
        )


class ModelCatalog(Protocol):
    """Read access to configured models."""

    def get(self, model_id: str) -> ModelRecord | None:
        ...

    def find_by_name(self, name: str) -> ModelRecord | None:
        ...

    def list(self) -> list[ModelRecord]:
        ...


class AccessControl(Protocol):
    """Decides which models a user may use."""

    def can_read_model(self, user_id: str, model_id: str) -> bool:
        ...


class InMemoryModelCatalog:
    """Catalog backed by a dict, seeded from configuration."""

    def __init__(self, records: Sequence[ModelRecord] = ()) -> None:
        self._records: dict[str, ModelRecord] = {r.id: r for r in records}

    @classmethod
    def from_entries(cls, entries: Sequence[Mapping[str, Any]]) -> "InMemoryModelCatalog":
        return cls(
            [
                ModelRecord(id=e["id"], name=e.get("name", e["id"]), meta=dict(e.get("meta") or {}))
                for e in entries
            ]
        )

    @classmethod
    def default(cls) -> "InMemoryModelCatalog":
        return cls.from_entries(AVAILABLE_MODELS)

    def add(self, record: ModelRecord) -> None:
        self._records[record.id] = record

    def get(self, model_id: str) -> ModelRecord | None:
        return self._records.get(model_id)

    def find_by_name(self, name: str) -> ModelRecord | None:
        return next((r for r in self._records.values() if r.name == name), None)

    def list(self) -> list[ModelRecord]:
        return list(self._records.values())


class AllowAllAccessControl:
    """Access control that lets every user read every model."""

    def can_read_model(self, user_id: str, model_id: str) -> bool:
        return True


@dataclass
class ResolvedModel:
    descriptor: ModelDescriptor
    handle: BackendHandle
    context_tokens: int | None = None


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def extract_context_tokens(meta: Mapping[str, Any] | None) -> int | None:
    """
    Read a context window size from model metadata.

    Checks ``context_window``, ``contextWindow``, ``context`` and
    ``max_context``, then ``details.context_window`` and ``details.context``.
    The first usable positive value wins.
    """
    if not meta:
        return None
    for key in CONTEXT_WINDOW_KEYS:
        tokens = _positive_int(meta.get(key))
        if tokens:
            return tokens
    details = meta.get("details")
    if isinstance(details, Mapping):
        for key in CONTEXT_WINDOW_DETAIL_KEYS:
            tokens = _positive_int(details.get(key))
            if tokens:
                return tokens
    return None


def _safe_lookup(catalog: ModelCatalog, method: str, key: str) -> ModelRecord | None:
    try:
        return getattr(catalog, method)(key)
    except Exception:
        logger.warning("Model catalog %s(%r) failed; falling back", method, key, exc_info=True)
        return None


def _can_read(access: AccessControl, user_id: str, model_id: str) -> bool:
    try:
        return access.can_read_model(user_id, model_id)
    except Exception:
        logger.warning("Access check for model %s failed; treating as denied", model_id, exc_info=True)
        return False


def resolve_model(
    requested_id: str | None,
    messages: Sequence[Message],
    fallback_name: str,
    *,
    user_id: str,
    catalog: ModelCatalog,
    access: AccessControl,
    provider: str = DEFAULT_PROVIDER,
) -> ResolvedModel:
    """
    Resolve the model for a turn.

    Resolution order (first match wins):
    1. ``requested_id`` if it exists and the user may read it
    2. the ``model`` recorded on the newest user message's metadata
    3. a catalog lookup of ``fallback_name`` by name
    4. a synthetic descriptor named ``fallback_name`` with no image

    Args:
        requested_id: Model id sent with the request, if any
        messages: Conversation history, oldest first
        fallback_name: Model name to use when nothing else resolves
        user_id: Requesting user
        catalog: Model catalog
        access: Access control collaborator
        provider: Backend provider prefix for the handle

    Returns:
        The resolved descriptor, handle and context window size
    """
    descriptor: ModelDescriptor | None = None
    record: ModelRecord | None = None

    if requested_id and _can_read(access, user_id, requested_id):
        record = _safe_lookup(catalog, "get", requested_id)
        if record is not None:
            descriptor = record.descriptor()

    if descriptor is None:
        for message in reversed(messages):
            if message.role == "user" and message.metadata and message.metadata.model:
                descriptor = message.metadata.model
                record = _safe_lookup(catalog, "get", descriptor.id)
                break

    if descriptor is None:
        record = _safe_lookup(catalog, "find_by_name", fallback_name)
        if record is not None:
            descriptor = record.descriptor()

    if descriptor is None:
        descriptor = ModelDescriptor(id=fallback_name, name=fallback_name, profile_image_url=None)

    context_tokens = extract_context_tokens(record.meta) if record is not None else None
    logger.debug(
        "Resolved model %s (%s), context tokens=%s", descriptor.id, descriptor.name, context_tokens
    )
    return ResolvedModel(
        descriptor=descriptor,
        handle=BackendHandle(provider=provider, name=descriptor.name),
        context_tokens=context_tokens,
    )
