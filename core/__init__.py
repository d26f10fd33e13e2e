"""
Core business logic package.

This package contains the transport-agnostic chat streaming core: context
budgeting, model resolution, turn production, the event-stream protocol and
its reconciler. The server package provides HTTP bindings around these
operations and the client package consumes them.
"""

from .budget import count_text_chars, filter_to_text_parts, trim_by_char_budget
from .cancellation import CancellationToken, TurnRegistry
from .exceptions import (
    ContextLengthExceededError,
    CoreError,
    InvalidRequestError,
    NotFoundError,
    StreamProtocolError,
    is_context_length_error,
)
from .models import (
    BackendHandle,
    BudgetPolicy,
    ChatRecord,
    Message,
    MessageMetadata,
    ModelDescriptor,
    OtherPart,
    Part,
    ReasoningPart,
    TextPart,
    ToolPart,
    gen_id,
)
from .producer import ChatProducer, ModelBackend, TurnState, build_start_metadata
from .protocol import DONE_MARKER, RecordReader, decode_record, encode_record, iter_records
from .reconciler import MessageAssembler, TextAccumulator, non_overlapping_suffix
from .resolver import (
    AccessControl,
    AllowAllAccessControl,
    InMemoryModelCatalog,
    ModelCatalog,
    ModelRecord,
    ResolvedModel,
    extract_context_tokens,
    resolve_model,
)
from .store import HistoryStore, InMemoryHistoryStore
from .turns import PreparedTurn, prepare_turn

__all__ = [
    # Exceptions
    "CoreError",
    "NotFoundError",
    "InvalidRequestError",
    "ContextLengthExceededError",
    "StreamProtocolError",
    "is_context_length_error",
    # Models
    "Message",
    "MessageMetadata",
    "ModelDescriptor",
    "BackendHandle",
    "BudgetPolicy",
    "ChatRecord",
    "Part",
    "TextPart",
    "ReasoningPart",
    "ToolPart",
    "OtherPart",
    "gen_id",
    # Budget
    "count_text_chars",
    "filter_to_text_parts",
    "trim_by_char_budget",
    # Model resolution
    "ModelRecord",
    "ModelCatalog",
    "InMemoryModelCatalog",
    "AccessControl",
    "AllowAllAccessControl",
    "ResolvedModel",
    "extract_context_tokens",
    "resolve_model",
    # Protocol
    "DONE_MARKER",
    "decode_record",
    "encode_record",
    "iter_records",
    "RecordReader",
    # Reconciliation
    "MessageAssembler",
    "TextAccumulator",
    "non_overlapping_suffix",
    # Turns
    "HistoryStore",
    "InMemoryHistoryStore",
    "PreparedTurn",
    "prepare_turn",
    "ChatProducer",
    "ModelBackend",
    "TurnState",
    "build_start_metadata",
    # Cancellation
    "CancellationToken",
    "TurnRegistry",
]
