"""
Domain models for the chat transport.

These are the core data structures used throughout the application.
"""

from .budget_policy import BudgetPolicy
from .chat import DEFAULT_CHAT_TITLE, ChatRecord
from .message import Message, MessageMetadata, Role
from .model_info import BackendHandle, ModelDescriptor
from .part import OtherPart, Part, ReasoningPart, TextPart, ToolPart
from .tool_state import TERMINAL_TOOL_STATES, ToolCallState, can_transition
from .utils import gen_id

__all__ = [
    # Utils
    "gen_id",
    # Model identity
    "ModelDescriptor",
    "BackendHandle",
    "BudgetPolicy",
    # Messages
    "Role",
    "Message",
    "MessageMetadata",
    "ChatRecord",
    "DEFAULT_CHAT_TITLE",
    # Parts
    "Part",
    "TextPart",
    "ReasoningPart",
    "ToolPart",
    "OtherPart",
    "ToolCallState",
    "TERMINAL_TOOL_STATES",
    "can_transition",
]
