"""
Tests for the Pydantic AI model backend.

Uses pydantic_ai's TestModel so no provider credentials are needed.
"""

from typing import AsyncIterator

import pytest
from pydantic_ai import Agent
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, SystemPromptPart, UserPromptPart
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel

from backend import PydanticAIBackend, create_backend, split_prompt, to_model_message
from conftest import make_message
from core import BackendHandle, Message, ReasoningPart
from core.reconciler import MessageAssembler


def make_handle(model=None) -> BackendHandle:
    return BackendHandle(provider="test", name="test", model=model)


async def collect(backend: PydanticAIBackend, handle: BackendHandle, messages):
    return [record async for record in backend.stream(handle, messages)]


class TestConversion:
    """Test conversion into Pydantic AI messages."""

    def test_roles(self):
        """Test that each role maps to the right message kind."""
        system = to_model_message(make_message("system", "Be brief"))
        user = to_model_message(make_message("user", "Hi"))
        assistant = to_model_message(make_message("assistant", "Hello"))

        assert isinstance(system, ModelRequest)
        assert isinstance(system.parts[0], SystemPromptPart)
        assert isinstance(user.parts[0], UserPromptPart)
        assert isinstance(assistant, ModelResponse)
        assert assistant.parts[0].content == "Hello"

    def test_messages_without_text_skipped(self):
        """Test that reasoning-only messages are not sent."""
        message = Message(id="a", role="assistant", parts=[ReasoningPart(text="...")])
        assert to_model_message(message) is None

    def test_split_prompt(self):
        """Test that the newest user message becomes the prompt."""
        messages = [
            make_message("system", "rules"),
            make_message("user", "first"),
            make_message("assistant", "reply"),
            make_message("user", "second"),
        ]
        prompt, history = split_prompt(messages)
        assert prompt == "second"
        assert len(history) == 3

    def test_split_prompt_without_trailing_user(self):
        """Test that a conversation ending with the assistant has no prompt."""
        prompt, history = split_prompt([make_message("user", "q"), make_message("assistant", "a")])
        assert prompt is None
        assert len(history) == 2


class TestPydanticAIBackend:
    """Test event translation with TestModel."""

    @pytest.mark.asyncio
    async def test_text_stream(self):
        """Test that text arrives as deltas followed by finish with usage."""
        backend = PydanticAIBackend(agent=Agent())
        handle = make_handle(TestModel(custom_output_text="Hello from the test model"))

        records = await collect(backend, handle, [make_message("user", "Say hello")])

        assert records[-1].type == "finish"
        assert isinstance(records[-1].metadata["totalTokens"], int)
        text = "".join(r.delta for r in records if r.type == "text")
        assert text == "Hello from the test model"

    @pytest.mark.asyncio
    async def test_tool_call_lifecycle(self):
        """Test that tool calls produce input and output records."""

        def get_weather(city: str) -> str:
            """Look up the weather for a city."""
            return f"Sunny in {city}"

        backend = PydanticAIBackend(agent=Agent(tools=[get_weather]))
        handle = make_handle(TestModel())

        records = await collect(backend, handle, [make_message("user", "Weather?")])
        types = [r.type for r in records]

        assert "tool-input-available" in types
        assert "tool-output-available" in types
        available = next(r for r in records if r.type == "tool-input-available")
        output = next(r for r in records if r.type == "tool-output-available")
        assert available.toolName == "get_weather"
        assert output.toolCallId == available.toolCallId
        assert output.output.startswith("Sunny in")

        assembler = MessageAssembler()
        for record in records:
            assembler.apply(record)
        assert assembler.tool_parts[0].state == "output-available"

    @pytest.mark.asyncio
    async def test_history_is_forwarded(self):
        """Test that earlier messages and instructions reach the model."""
        received: list[ModelMessage] = []

        async def stream_reply(messages: list[ModelMessage], info: AgentInfo) -> AsyncIterator[str]:
            received.extend(messages)
            yield "ok"

        backend = create_backend(system_prompt="You are terse.")
        messages = [
            make_message("user", "one"),
            make_message("assistant", "two"),
            make_message("user", "three"),
        ]

        records = await collect(backend, make_handle(FunctionModel(stream_function=stream_reply)), messages)

        assert [r.delta for r in records if r.type == "text"] == ["ok"]
        assert isinstance(received[0].parts[0], UserPromptPart)
        assert received[0].parts[0].content == "one"
        assert isinstance(received[1], ModelResponse)
        assert received[-1].parts[-1].content == "three"
        assert received[-1].instructions == "You are terse."
