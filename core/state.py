"""
In-memory state storage.

Process-wide chat storage and the registry of in-flight turns. In a
production system the store could be replaced with a database-backed
implementation.
"""

from .cancellation import TurnRegistry
from .store import InMemoryHistoryStore

# =============================================================================
# Chat Storage
# =============================================================================

chat_store = InMemoryHistoryStore()


# =============================================================================
# Turn Management
# =============================================================================

active_turns = TurnRegistry()  # chatID -> cancellation token of the running turn
