"""
Tests for history budgeting.
"""

import random

import pytest

from conftest import make_message
from core import BudgetPolicy, OtherPart, ReasoningPart, TextPart, ToolPart
from core.budget import count_text_chars, filter_to_text_parts, trim_by_char_budget
from core.models import Message


def ids(messages):
    return [m.id for m in messages]


def random_history(rng: random.Random, with_system: bool) -> list[Message]:
    messages = []
    if with_system:
        messages.append(make_message("system", "s" * rng.randint(0, 40), message_id="sys"))
    for i in range(rng.randint(0, 30)):
        role = "user" if i % 2 == 0 else "assistant"
        messages.append(make_message(role, "x" * rng.randint(0, 120), message_id=f"m{i}"))
    return messages


class TestBudgetPolicy:
    """Test character budget derivation."""

    def test_unknown_context_uses_default(self):
        """Test that a missing context window falls back to 12000 tokens."""
        policy = BudgetPolicy.from_context_tokens(None)
        assert policy.maxChars == 9600 * 4
        assert policy.minTailMessages == 8

    def test_large_context(self):
        """Test that 80% of the context window is used."""
        assert BudgetPolicy.from_context_tokens(128000).maxChars == 102400 * 4

    def test_small_context_has_floor(self):
        """Test that the effective budget never drops below 2000 tokens."""
        assert BudgetPolicy.from_context_tokens(1000).maxChars == 2000 * 4

    def test_fractional_tokens_are_floored(self):
        """Test that the utilization product is rounded down."""
        assert BudgetPolicy.from_context_tokens(4001).maxChars == 3200 * 4


class TestFilterToTextParts:
    """Test reduction of messages to capped text parts."""

    def test_drops_non_text_parts(self):
        """Test that reasoning, tool and unknown parts are removed."""
        message = Message(
            id="a1",
            role="assistant",
            parts=[
                ReasoningPart(text="thinking"),
                TextPart(text="answer"),
                ToolPart.for_tool("search", "call-1"),
                OtherPart(type="file", url="https://example.com/a.png"),
            ],
        )
        result = filter_to_text_parts([message])
        assert len(result) == 1
        assert [p.type for p in result[0].parts] == ["text"]
        assert result[0].text() == "answer"

    def test_removes_messages_without_text(self):
        """Test that messages left with no parts are dropped."""
        message = Message(id="a1", role="assistant", parts=[ReasoningPart(text="only thoughts")])
        assert filter_to_text_parts([message]) == []

    def test_caps_text_per_message(self):
        """Test that the cap applies to the concatenated text of a message."""
        message = Message(
            id="u1", role="user", parts=[TextPart(text="a" * 6), TextPart(text="b" * 6)]
        )
        result = filter_to_text_parts([message], max_chars_per_message=8)
        assert result[0].text() == "a" * 6 + "b" * 2

    def test_default_cap_is_4000(self):
        """Test the default per-message ceiling."""
        result = filter_to_text_parts([make_message("user", "z" * 5000)])
        assert len(result[0].text()) == 4000

    def test_input_not_modified(self):
        """Test that filtering returns new messages."""
        original = make_message("user", "q" * 50)
        filter_to_text_parts([original], max_chars_per_message=10)
        assert original.text() == "q" * 50


class TestTrimByCharBudget:
    """Test budget trimming."""

    def test_empty_input(self):
        """Test that nothing in gives nothing out."""
        assert trim_by_char_budget([], 100, 8) == []

    def test_everything_fits(self):
        """Test that a small history is returned unchanged."""
        messages = [make_message("user", "hi", message_id="u1"), make_message("assistant", "hello", message_id="a1")]
        assert ids(trim_by_char_budget(messages, 100, 8)) == ["u1", "a1"]

    def test_system_message_always_kept(self):
        """Test that the first system message survives trimming."""
        messages = [make_message("system", "rules", message_id="sys")] + [
            make_message("user", "x" * 30, message_id=f"m{i}") for i in range(5)
        ]
        result = trim_by_char_budget(messages, 60, 8)
        assert ids(result) == ["sys", "m4"]

    def test_oldest_messages_dropped_first(self):
        """Test that the newest messages fitting the budget are kept."""
        messages = [make_message("user", "x" * 10, message_id=f"m{i}") for i in range(10)]
        assert ids(trim_by_char_budget(messages, 35, 8)) == ["m7", "m8", "m9"]

    def test_head_readmitted_when_tail_fits(self):
        """Test that older messages are added back while they fit."""
        messages = [make_message("user", "x" * 10, message_id=f"m{i}") for i in range(6)]
        result = trim_by_char_budget(messages, 45, 2)
        assert ids(result) == ["m2", "m3", "m4", "m5"]

    def test_head_readmission_stops_at_first_miss(self):
        """Test that re-admission stops at the first older message that does not fit."""
        messages = [
            make_message("user", "x" * 5, message_id="tiny"),
            make_message("user", "x" * 50, message_id="big"),
            make_message("user", "x" * 10, message_id="last"),
        ]
        assert ids(trim_by_char_budget(messages, 30, 1)) == ["last"]

    def test_single_oversized_message_kept(self):
        """Test that the newest message is kept even when it alone exceeds the budget."""
        messages = [make_message("user", "a" * 10, message_id="old"), make_message("user", "b" * 500, message_id="new")]
        assert ids(trim_by_char_budget(messages, 100, 8)) == ["new"]

    def test_zero_tail_keeps_newest(self):
        """Test that a zero-length tail still yields the newest message."""
        messages = [make_message("user", "a" * 10, message_id=f"m{i}") for i in range(3)]
        assert ids(trim_by_char_budget(messages, 25, 0)) == ["m1", "m2"]

    def test_does_not_cut_text(self):
        """Test that kept messages are whole."""
        messages = [make_message("user", "x" * 40, message_id=f"m{i}") for i in range(4)]
        result = trim_by_char_budget(messages, 100, 8)
        assert all(m.text() == "x" * 40 for m in result)

    @pytest.mark.parametrize("seed", range(40))
    def test_budget_invariant(self, seed):
        """Test that output fits whenever system plus the tail fits."""
        rng = random.Random(seed)
        messages = random_history(rng, with_system=rng.random() < 0.5)
        max_chars = rng.randint(0, 1500)
        k = rng.randint(0, 10)

        result = trim_by_char_budget(messages, max_chars, k)

        system = [m for m in messages if m.role == "system"][:1]
        rest = [m for m in messages if m.role != "system"]
        tail = rest[len(rest) - min(max(k, 1), len(rest)):]
        if count_text_chars(system + tail) <= max_chars:
            assert count_text_chars(result) <= max_chars
        if rest:
            assert any(m.role != "system" for m in result)
            assert result[-1] is rest[-1]

    @pytest.mark.parametrize("seed", range(40))
    def test_idempotent(self, seed):
        """Test that trimming a trimmed history changes nothing."""
        rng = random.Random(1000 + seed)
        messages = random_history(rng, with_system=rng.random() < 0.5)
        max_chars = rng.randint(0, 1500)
        k = rng.randint(0, 10)

        once = trim_by_char_budget(messages, max_chars, k)
        twice = trim_by_char_budget(once, max_chars, k)
        assert ids(twice) == ids(once)

    @pytest.mark.parametrize("seed", range(40))
    def test_order_preserving_subsequence(self, seed):
        """Test that output is an order-preserving subsequence of the input."""
        rng = random.Random(2000 + seed)
        messages = random_history(rng, with_system=True)
        result = trim_by_char_budget(messages, rng.randint(0, 1500), rng.randint(0, 10))

        positions = [next(i for i, m in enumerate(messages) if m is kept) for kept in result]
        assert positions == sorted(positions)
        assert len(set(positions)) == len(positions)
