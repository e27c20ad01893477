"""
The question-answering agent loop.

The loop seeds the conversation with a listing of the collection root and
the user's question, then alternates model turns and tool executions until
the model answers without calling a tool or the step budget runs out.
Events are exposed lazily (``AgentLoop.stream``) for forwarding to a client,
or eagerly (``AgentLoop.run``) as a finished answer plus the event list.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from sourcefs.agent.events import (
    AgentEvent,
    Error,
    Finish,
    ReasoningDelta,
    TextDelta,
    ToolCall,
    ToolResult,
    Usage,
)
from sourcefs.config import ToolsConfig
from sourcefs.errors import AgentError, CommonHints
from sourcefs.llms.base import BaseModelProvider
from sourcefs.metrics import Metrics
from sourcefs.prompts import get_agent_system_prompt, get_initial_user_message
from sourcefs.tools.base import ToolContext
from sourcefs.tools.langchain_tools import LangChainToolProvider
from sourcefs.tools.listing import ListParameters, execute_list
from sourcefs.virtual_fs import VfsRegistry

DEFAULT_MAX_STEPS = 40


@dataclass
class AgentLoopOptions:
    """Inputs of one agent run."""

    provider_id: str
    model_id: str
    collection_path: str
    vfs_instance_id: str
    agent_instructions: str
    question: str
    max_steps: int = DEFAULT_MAX_STEPS
    temperature: float | None = None


@dataclass
class AgentLoopResult:
    """Outcome of an eager agent run."""

    answer: str
    model: dict[str, str]
    events: list[AgentEvent] = field(default_factory=list)

    @property
    def error(self) -> BaseException | None:
        for event in self.events:
            if isinstance(event, Error):
                return event.error
        return None


# =============================================================================
# Chunk decoding
# =============================================================================


def _split_content(chunk: Any) -> tuple[str, str]:
    """Separate answer text from reasoning text in a streamed message chunk."""
    text_parts: list[str] = []
    reasoning_parts: list[str] = []

    content = getattr(chunk, "content", "")
    if isinstance(content, str):
        text_parts.append(content)
    elif isinstance(content, list):
        for block in content:
            if isinstance(block, str):
                text_parts.append(block)
                continue
            if not isinstance(block, dict):
                continue
            block_type = block.get("type")
            if block_type == "text":
                text_parts.append(block.get("text") or "")
            elif block_type == "thinking":
                reasoning_parts.append(block.get("thinking") or "")
            elif block_type == "reasoning":
                if isinstance(block.get("reasoning"), str):
                    reasoning_parts.append(block["reasoning"])
                for summary in block.get("summary") or []:
                    if isinstance(summary, dict):
                        reasoning_parts.append(summary.get("text") or "")

    additional = getattr(chunk, "additional_kwargs", None) or {}
    reasoning_content = additional.get("reasoning_content")
    if isinstance(reasoning_content, str):
        reasoning_parts.append(reasoning_content)

    return "".join(text_parts), "".join(reasoning_parts)


class _UsageAccumulator:
    """Sums ``usage_metadata`` across chunks and turns."""

    def __init__(self):
        self.usage = Usage()

    @staticmethod
    def _add(current: int | None, value: Any) -> int | None:
        if not isinstance(value, int):
            return current
        return (current or 0) + value

    def add(self, usage_metadata: Any) -> None:
        if not usage_metadata:
            return
        self.usage.input_tokens = self._add(self.usage.input_tokens, usage_metadata.get("input_tokens"))
        self.usage.output_tokens = self._add(
            self.usage.output_tokens, usage_metadata.get("output_tokens")
        )
        self.usage.total_tokens = self._add(self.usage.total_tokens, usage_metadata.get("total_tokens"))
        details = usage_metadata.get("output_token_details") or {}
        self.usage.reasoning_tokens = self._add(self.usage.reasoning_tokens, details.get("reasoning"))


def _collect_tool_call_chunks(chunk: Any, tool_call_chunks: dict[int, dict[str, str]]) -> None:
    # Tool call chunks arrive progressively, keyed by index
    for tc_chunk in getattr(chunk, "tool_call_chunks", None) or []:
        idx = tc_chunk.get("index")
        if idx is None:
            idx = len(tool_call_chunks)

        if idx not in tool_call_chunks:
            tool_call_chunks[idx] = {"id": "", "name": "", "args": ""}

        if tc_chunk.get("id"):
            tool_call_chunks[idx]["id"] = tc_chunk["id"]
        if tc_chunk.get("name"):
            tool_call_chunks[idx]["name"] = tc_chunk["name"]
        if tc_chunk.get("args"):
            tool_call_chunks[idx]["args"] += tc_chunk["args"]


def _build_tool_calls(tool_call_chunks: dict[int, dict[str, str]], step: int) -> list[dict[str, Any]]:
    tool_calls = []
    for idx in sorted(tool_call_chunks):
        tc = tool_call_chunks[idx]
        if not tc["name"]:
            continue
        try:
            args = json.loads(tc["args"]) if tc["args"] else {}
        except json.JSONDecodeError:
            args = {}
        if not isinstance(args, dict):
            args = {}
        tool_calls.append(
            {
                "id": tc["id"] or f"call_{step}_{idx}",
                "name": tc["name"],
                "args": args,
            }
        )
    return tool_calls


# =============================================================================
# Agent Loop
# =============================================================================


class AgentLoop:
    """Drives a tool-calling conversation over one collection."""

    def __init__(
        self,
        model_provider: BaseModelProvider,
        registry: VfsRegistry,
        tools_config: ToolsConfig | None = None,
        debug: bool = False,
    ):
        """
        Initialize the agent loop.

        Args:
            model_provider: Source of chat models.
            registry: Registry owning the collection's VFS instance.
            tools_config: Limits for the read/grep/glob/list tools.
            debug: Print verbose diagnostics.
        """
        self.model_provider = model_provider
        self.registry = registry
        self.tools_config = tools_config or ToolsConfig()
        self.debug = debug

    def _debug_log(self, message: str) -> None:
        """Log a debug message if debug mode is enabled."""
        if self.debug:
            print(f"[SourceFS DEBUG] {message}")

    async def stream(self, options: AgentLoopOptions) -> AsyncIterator[AgentEvent]:
        """
        Run the agent, yielding events as they are produced.

        The sequence always ends with exactly one ``Finish`` or ``Error``.
        """
        Metrics.info(
            "agent.loop.start",
            provider=options.provider_id,
            model=options.model_id,
            maxSteps=options.max_steps,
        )

        try:
            model = self.model_provider.get_model(
                options.provider_id,
                options.model_id,
                temperature=options.temperature,
            )
            context = ToolContext(
                base_path=options.collection_path,
                vfs_instance_id=options.vfs_instance_id,
                registry=self.registry,
            )
            tool_provider = LangChainToolProvider(context, self.tools_config)
            bound_model = model.bind_tools(tool_provider.get_tools())

            listing = execute_list(ListParameters(path="."), context).output
            messages: list[BaseMessage] = [
                SystemMessage(content=get_agent_system_prompt(options.agent_instructions)),
                HumanMessage(content=get_initial_user_message(listing, options.question)),
            ]

            usage = _UsageAccumulator()
            finish_reason = "max-steps"

            for step in range(options.max_steps):
                Metrics.info("agent.loop.step", step=step + 1)
                full_content = ""
                tool_call_chunks: dict[int, dict[str, str]] = {}
                step_finish_reason = None

                async for chunk in bound_model.astream(messages):
                    text, reasoning = _split_content(chunk)
                    if reasoning:
                        yield ReasoningDelta(reasoning)
                    if text:
                        full_content += text
                        yield TextDelta(text)

                    _collect_tool_call_chunks(chunk, tool_call_chunks)
                    usage.add(getattr(chunk, "usage_metadata", None))

                    response_metadata = getattr(chunk, "response_metadata", None) or {}
                    reason = response_metadata.get("finish_reason") or response_metadata.get(
                        "stop_reason"
                    )
                    if reason:
                        step_finish_reason = reason

                tool_calls = _build_tool_calls(tool_call_chunks, step)
                messages.append(AIMessage(content=full_content, tool_calls=tool_calls))
                self._debug_log(
                    f"step {step + 1}: {len(full_content)} chars, {len(tool_calls)} tool calls"
                )

                if not tool_calls:
                    finish_reason = step_finish_reason or "stop"
                    break

                for tool_call in tool_calls:
                    yield ToolCall(tool_call["name"], tool_call["args"])
                    # Tools walk the VFS synchronously
                    output = await asyncio.to_thread(
                        tool_provider.execute_tool, tool_call["name"], tool_call["args"]
                    )
                    yield ToolResult(tool_call["name"], output)
                    messages.append(ToolMessage(content=output, tool_call_id=tool_call["id"]))

            Metrics.info(
                "agent.loop.finish",
                finishReason=finish_reason,
                messages=len(messages),
                **usage.usage.to_dict(),
            )
            yield Finish(finish_reason, usage.usage)

        except Exception as e:
            Metrics.error("agent.loop.error", error=Metrics.error_info(e))
            yield Error(
                AgentError(
                    "Failed to get response from AI",
                    hint=CommonHints.CHECK_PROVIDER,
                    cause=e,
                )
            )

    async def run(self, options: AgentLoopOptions) -> AgentLoopResult:
        """Run the agent to completion and return the answer with every event."""
        events: list[AgentEvent] = []
        full_text = ""
        async for event in self.stream(options):
            events.append(event)
            if isinstance(event, TextDelta):
                full_text += event.text

        return AgentLoopResult(
            answer=full_text.strip(),
            model={"provider": options.provider_id, "model": options.model_id},
            events=events,
        )
