"""Tool-call state models."""

from typing import Literal

ToolCallState = Literal[
    "input-streaming",
    "input-available",
    "output-available",
    "output-error",
]

TERMINAL_TOOL_STATES: frozenset[str] = frozenset({"output-available", "output-error"})

# Allowed forward moves; staying in the same non-terminal state is always allowed.
TOOL_STATE_TRANSITIONS: dict[str, frozenset[str]] = {
    "input-streaming": frozenset({"input-available", "output-available", "output-error"}),
    "input-available": frozenset({"output-available", "output-error"}),
    "output-available": frozenset(),
    "output-error": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    """Return True if a tool-call part may move from ``current`` to ``target``."""
    if current in TERMINAL_TOOL_STATES:
        return False
    if current == target:
        return True
    return target in TOOL_STATE_TRANSITIONS.get(current, frozenset())
