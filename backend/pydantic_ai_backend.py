"""
Model backend built on Pydantic AI streaming.

Uses run_stream_events() and translates agent events into event-stream
protocol records: text deltas, reasoning (thinking) start/delta/end, and
the tool-call lifecycle keyed by tool call id.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Sequence

from pydantic_ai import Agent, AgentRunResultEvent
from pydantic_ai.messages import (
    FunctionToolCallEvent,
    FunctionToolResultEvent,
    PartDeltaEvent,
    PartStartEvent,
    TextPart,
    TextPartDelta,
    ThinkingPart,
    ThinkingPartDelta,
    ToolCallPart,
    ToolCallPartDelta,
    ToolReturnPart,
)

from core.models import BackendHandle, Message
from core.protocol import (
    FinishRecord,
    ReasoningEndRecord,
    ReasoningRecord,
    ReasoningStartRecord,
    StreamRecord,
    TextRecord,
    ToolInputAvailableRecord,
    ToolInputDeltaRecord,
    ToolInputErrorRecord,
    ToolInputStartRecord,
    ToolOutputAvailableRecord,
)

from .conversion import split_prompt

logger = logging.getLogger(__name__)


def _tool_args(part: ToolCallPart) -> Any:
    try:
        return part.args_as_dict()
    except Exception:
        # Partial or non-JSON arguments are passed through as received
        return part.args


def _tool_output(content: Any) -> Any:
    if isinstance(content, (str, int, float, bool, dict, list)) or content is None:
        return content
    if hasattr(content, "model_dump"):
        return content.model_dump(mode="json")
    return str(content)


@dataclass
class _RunState:
    """Per-run bookkeeping while translating events."""

    reasoning_open: bool = False
    tool_ids_by_index: dict[int, str] = field(default_factory=dict)
    tool_names: dict[str, str] = field(default_factory=dict)
    tool_call_count: int = 0


@dataclass
class PydanticAIBackend:
    """
    Streams a conversation through a Pydantic AI Agent.

    The agent carries no default model; each call targets the model named by
    its BackendHandle (``provider:name`` or a prebuilt model object).
    """

    agent: Agent = field(default_factory=Agent)

    async def stream(
        self, handle: BackendHandle, messages: Sequence[Message]
    ) -> AsyncIterator[StreamRecord]:
        """
        Run the agent over ``messages`` and yield protocol records.

        Args:
            handle: Backend target for this run
            messages: Conversation to send, oldest first

        Yields:
            Text, reasoning and tool records, then a ``finish`` with usage
        """
        prompt, history = split_prompt(messages)
        state = _RunState()
        logger.debug(
            "Starting backend stream with model=%s (%d history messages)",
            handle.model_string,
            len(history),
        )

        async with self.agent.run_stream_events(
            prompt, message_history=history, model=handle.target()
        ) as events:
            async for event in events:
                for record in self._translate(event, state):
                    yield record

        for record in self._close_reasoning(state):
            yield record
        logger.debug("Backend stream complete: %d tool calls", state.tool_call_count)

    # -------------------------------------------------------------------------
    # Event translation
    # -------------------------------------------------------------------------

    def _translate(self, event: Any, state: _RunState) -> list[StreamRecord]:
        """Map one agent event to the records it produces."""
        if isinstance(event, PartStartEvent):
            return self._on_part_start(event, state)

        if isinstance(event, PartDeltaEvent):
            return self._on_part_delta(event, state)

        if isinstance(event, FunctionToolCallEvent):
            records = self._close_reasoning(state)
            tool_call_id = event.part.tool_call_id
            state.tool_names[tool_call_id] = event.part.tool_name
            state.tool_call_count += 1
            records.append(
                ToolInputAvailableRecord(
                    toolCallId=tool_call_id,
                    toolName=event.part.tool_name,
                    input=_tool_args(event.part),
                )
            )
            return records

        if isinstance(event, FunctionToolResultEvent):
            result = event.part
            if isinstance(result, ToolReturnPart):
                return [
                    ToolOutputAvailableRecord(
                        toolCallId=result.tool_call_id,
                        toolName=result.tool_name,
                        output=_tool_output(result.content),
                    )
                ]
            return [
                ToolInputErrorRecord(
                    toolCallId=result.tool_call_id,
                    toolName=state.tool_names.get(result.tool_call_id),
                    errorText=result.model_response(),
                )
            ]

        if isinstance(event, AgentRunResultEvent):
            records = self._close_reasoning(state)
            usage = event.result.usage
            records.append(FinishRecord(metadata={"totalTokens": getattr(usage, "total_tokens", None)}))
            return records

        return []

    @staticmethod
    def _close_reasoning(state: _RunState) -> list[StreamRecord]:
        if not state.reasoning_open:
            return []
        state.reasoning_open = False
        return [ReasoningEndRecord()]

    def _on_part_start(self, event: PartStartEvent, state: _RunState) -> list[StreamRecord]:
        part = event.part
        if isinstance(part, ThinkingPart):
            records: list[StreamRecord] = []
            if not state.reasoning_open:
                state.reasoning_open = True
                records.append(ReasoningStartRecord())
            if part.content:
                records.append(ReasoningRecord(delta=part.content))
            return records

        records = self._close_reasoning(state)
        if isinstance(part, TextPart):
            if part.content:
                records.append(TextRecord(delta=part.content))
        elif isinstance(part, ToolCallPart):
            state.tool_ids_by_index[event.index] = part.tool_call_id
            state.tool_names[part.tool_call_id] = part.tool_name
            records.append(
                ToolInputStartRecord(toolCallId=part.tool_call_id, toolName=part.tool_name)
            )
            if isinstance(part.args, str) and part.args:
                records.append(
                    ToolInputDeltaRecord(toolCallId=part.tool_call_id, delta=part.args)
                )
        return records

    @staticmethod
    def _on_part_delta(event: PartDeltaEvent, state: _RunState) -> list[StreamRecord]:
        delta = event.delta
        if isinstance(delta, TextPartDelta):
            if delta.content_delta:
                return [TextRecord(delta=delta.content_delta)]
        elif isinstance(delta, ThinkingPartDelta):
            if delta.content_delta:
                return [ReasoningRecord(delta=delta.content_delta)]
        elif isinstance(delta, ToolCallPartDelta):
            tool_call_id = delta.tool_call_id or state.tool_ids_by_index.get(event.index)
            if tool_call_id and delta.args_delta:
                args = delta.args_delta
                text = args if isinstance(args, str) else json.dumps(args)
                return [ToolInputDeltaRecord(toolCallId=tool_call_id, delta=text)]
        return []


def create_backend(system_prompt: str | None = None) -> PydanticAIBackend:
    """Create a backend whose agent optionally carries fixed instructions."""
    agent = Agent(instructions=system_prompt) if system_prompt else Agent()
    return PydanticAIBackend(agent=agent)
