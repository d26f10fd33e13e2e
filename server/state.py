"""
Server-side state management.

This module holds the collaborators wired into the HTTP layer: the model
backend, the model catalog and access control. Chat storage and the turn
registry live in core/state.py.
"""

from config import get_config
from core import (
    AccessControl,
    AllowAllAccessControl,
    HistoryStore,
    InMemoryModelCatalog,
    ModelBackend,
    ModelCatalog,
    TurnRegistry,
)
from core.state import active_turns, chat_store


# =============================================================================
# Backend Management
# =============================================================================

_backend: ModelBackend | None = None


def set_backend(new_backend: ModelBackend | None) -> None:
    """Set the model backend. Called at application startup."""
    global _backend
    _backend = new_backend


def get_backend() -> ModelBackend | None:
    """Get the current model backend."""
    return _backend


# =============================================================================
# Model Catalog and Access Control
# =============================================================================

_catalog: ModelCatalog | None = None
_access_control: AccessControl = AllowAllAccessControl()


def set_catalog(catalog: ModelCatalog | None) -> None:
    """Set the model catalog; None reverts to the configured models."""
    global _catalog
    _catalog = catalog


def get_catalog() -> ModelCatalog:
    """Get the model catalog, seeding it from configuration on first use."""
    global _catalog
    if _catalog is None:
        _catalog = InMemoryModelCatalog.from_entries(
            [entry.model_dump() for entry in get_config().models]
        )
    return _catalog


def set_access_control(access: AccessControl) -> None:
    """Set the access control collaborator."""
    global _access_control
    _access_control = access


def get_access_control() -> AccessControl:
    return _access_control


# =============================================================================
# Storage
# =============================================================================

_store: HistoryStore = chat_store


def set_store(store: HistoryStore) -> None:
    """Replace the history store (e.g. with a database-backed one)."""
    global _store
    _store = store


def get_store() -> HistoryStore:
    return _store


def get_turn_registry() -> TurnRegistry:
    return active_turns
