"""
Tests for sourcefs.agent.

This module tests:
- Conversation seeding with the collection listing and question
- Tool call execution and event ordering
- Step budget and terminal events
- Error reporting
"""

import asyncio
import time
from unittest.mock import patch

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from sourcefs.agent import (
    AgentLoop,
    AgentLoopOptions,
    Error,
    Finish,
    ReasoningDelta,
    TextDelta,
    ToolCall,
    ToolResult,
)
from sourcefs.errors import InvalidProviderError, get_error_message, get_error_tag
from tests.fakes import FakeChatModel, FakeModelProvider, text_chunk, tool_chunk, usage


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def collection(registry):
    vfs_id = registry.create()
    registry.get(vfs_id).write_file("/hello.txt", "Hello")
    return vfs_id


@pytest.fixture
def options(collection):
    return AgentLoopOptions(
        provider_id="fake",
        model_id="fake-model",
        collection_path="/",
        vfs_instance_id=collection,
        agent_instructions="## Resource: hello",
        question="What does hello say?",
    )


def tool_then_answer():
    return FakeChatModel(
        [
            [
                text_chunk("Let me look. "),
                tool_chunk(name="read", args='{"path": "hel', call_id="call_1"),
                tool_chunk(args='lo.txt"}', usage_metadata=usage(10, 5)),
            ],
            [
                text_chunk("The file says Hello."),
                text_chunk("", response_metadata={"finish_reason": "stop"}, usage_metadata=usage(20, 7)),
            ],
        ]
    )


async def collect(loop, options):
    return [event async for event in loop.stream(options)]


# =============================================================================
# Streaming Tests
# =============================================================================


class TestAgentLoopStream:
    @pytest.mark.asyncio
    async def test_event_order(self, registry, options):
        model = tool_then_answer()
        loop = AgentLoop(FakeModelProvider(model), registry)

        events = await collect(loop, options)

        assert events[:4] == [
            TextDelta("Let me look. "),
            ToolCall("read", {"path": "hello.txt"}),
            ToolResult("read", "    1\tHello"),
            TextDelta("The file says Hello."),
        ]
        finish = events[4]
        assert isinstance(finish, Finish)
        assert finish.finish_reason == "stop"
        assert finish.usage.input_tokens == 30
        assert finish.usage.output_tokens == 12
        assert finish.usage.total_tokens == 42
        assert len(events) == 5

    @pytest.mark.asyncio
    async def test_conversation_is_seeded(self, registry, options):
        model = tool_then_answer()
        loop = AgentLoop(FakeModelProvider(model), registry)

        await collect(loop, options)

        first_call = model.calls[0]
        assert isinstance(first_call[0], SystemMessage)
        assert first_call[0].content.endswith("## Resource: hello")
        assert isinstance(first_call[1], HumanMessage)
        assert first_call[1].content == (
            "Collection contents:\n"
            "[FILE] hello.txt (5 B)\n"
            "\n"
            "Total: 1 items (0 directories, 1 files)\n"
            "\n"
            "Question: What does hello say?"
        )
        assert [tool.name for tool in model.bound_tools] == ["read", "grep", "glob", "list"]

    @pytest.mark.asyncio
    async def test_tool_results_are_fed_back(self, registry, options):
        model = tool_then_answer()
        loop = AgentLoop(FakeModelProvider(model), registry)

        await collect(loop, options)

        second_call = model.calls[1]
        assistant, tool_message = second_call[2], second_call[3]
        assert isinstance(assistant, AIMessage)
        assert assistant.content == "Let me look. "
        assert assistant.tool_calls[0]["id"] == "call_1"
        assert assistant.tool_calls[0]["args"] == {"path": "hello.txt"}
        assert isinstance(tool_message, ToolMessage)
        assert tool_message.tool_call_id == "call_1"
        assert tool_message.content == "    1\tHello"

    @pytest.mark.asyncio
    async def test_step_budget(self, registry, options):
        model = FakeChatModel([[tool_chunk(name="list", args='{"path": "."}')]])
        loop = AgentLoop(FakeModelProvider(model), registry)
        options.max_steps = 2

        events = await collect(loop, options)

        assert len(model.calls) == 2
        assert [type(event) for event in events] == [ToolCall, ToolResult, ToolCall, ToolResult, Finish]
        assert events[-1].finish_reason == "max-steps"
        assert events[-1].usage.has_values() is False
        assert model.calls[1][2].tool_calls[0]["id"] == "call_0_0"

    @pytest.mark.asyncio
    async def test_tool_errors_do_not_stop_the_loop(self, registry, options):
        model = FakeChatModel(
            [
                [tool_chunk(name="read", args='{"path": "missing.txt"}', call_id="c1")],
                [text_chunk("Cannot read that.")],
            ]
        )
        loop = AgentLoop(FakeModelProvider(model), registry)

        events = await collect(loop, options)

        assert events[1].output.startswith("File not found: missing.txt")
        assert events[2] == TextDelta("Cannot read that.")
        assert events[-1].finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_reasoning_blocks(self, registry, options):
        model = FakeChatModel(
            [
                [
                    text_chunk(
                        [
                            {"type": "thinking", "thinking": "Check the file."},
                            {"type": "text", "text": "Hello."},
                        ],
                        usage_metadata=usage(3, 4, reasoning=2),
                    )
                ]
            ]
        )
        loop = AgentLoop(FakeModelProvider(model), registry)

        events = await collect(loop, options)

        assert events[0] == ReasoningDelta("Check the file.")
        assert events[1] == TextDelta("Hello.")
        assert events[2].usage.reasoning_tokens == 2

    @pytest.mark.asyncio
    async def test_slow_tool_does_not_block_the_event_loop(self, registry, options):
        model = FakeChatModel(
            [
                [tool_chunk(name="grep", args='{"pattern": "Hello"}', call_id="g1")],
                [text_chunk("Found it.")],
            ]
        )
        loop = AgentLoop(FakeModelProvider(model), registry)
        ticks = []

        def slow_execute(self, tool_name, arguments):
            time.sleep(0.2)
            return "hello.txt:\n  Line 1: Hello"

        async def ticker():
            while True:
                ticks.append(1)
                await asyncio.sleep(0.01)

        ticking = asyncio.ensure_future(ticker())
        try:
            with patch("sourcefs.agent.loop.LangChainToolProvider.execute_tool", slow_execute):
                events = await collect(loop, options)
        finally:
            ticking.cancel()

        assert events[1] == ToolResult("grep", "hello.txt:\n  Line 1: Hello")
        assert len(ticks) > 5


# =============================================================================
# Error Tests
# =============================================================================


class TestAgentLoopErrors:
    @pytest.mark.asyncio
    async def test_invalid_provider(self, registry, options):
        provider = FakeModelProvider(error=InvalidProviderError("nope", ["fake"]))
        loop = AgentLoop(provider, registry)

        events = await collect(loop, options)

        assert len(events) == 1
        assert isinstance(events[0], Error)
        assert get_error_tag(events[0].error) == "InvalidProviderError"
        assert get_error_message(events[0].error) == 'Invalid provider: "nope"'

    @pytest.mark.asyncio
    async def test_model_failure_mid_stream(self, registry, options):
        model = FakeChatModel([[text_chunk("Partial")]], error=RuntimeError("connection reset"))
        loop = AgentLoop(FakeModelProvider(model), registry)

        events = await collect(loop, options)

        assert events[0] == TextDelta("Partial")
        assert isinstance(events[1], Error)
        assert get_error_tag(events[1].error) == "AgentError"
        assert get_error_message(events[1].error) == "connection reset"
        assert len(events) == 2


# =============================================================================
# Eager Mode Tests
# =============================================================================


class TestAgentLoopRun:
    @pytest.mark.asyncio
    async def test_run_returns_answer(self, registry, options):
        loop = AgentLoop(FakeModelProvider(tool_then_answer()), registry)

        result = await loop.run(options)

        assert result.answer == "Let me look. The file says Hello."
        assert result.model == {"provider": "fake", "model": "fake-model"}
        assert result.error is None
        assert isinstance(result.events[-1], Finish)

    @pytest.mark.asyncio
    async def test_run_exposes_error(self, registry, options):
        model = FakeChatModel([[text_chunk("x")]], error=RuntimeError("boom"))
        loop = AgentLoop(FakeModelProvider(model), registry)

        result = await loop.run(options)

        assert result.error is not None
        assert result.answer == "x"
