"""
Wire events of the SourceFS answer stream.

Each event is serialized as one Server-Sent Events frame::

    event: <type>
    data: <json>

where the JSON payload repeats ``type`` alongside the event's fields.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass
class MetaEvent:
    """First event of every stream: which model answers, over which collection."""

    model: dict[str, str]
    resources: list[str]
    collection: dict[str, str]
    type: str = field(default="meta", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "model": dict(self.model),
            "resources": list(self.resources),
            "collection": dict(self.collection),
        }


@dataclass
class TextDeltaEvent:
    delta: str
    type: str = field(default="text.delta", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "delta": self.delta}


@dataclass
class ReasoningDeltaEvent:
    delta: str
    type: str = field(default="reasoning.delta", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "delta": self.delta}


@dataclass
class ToolState:
    """Progress of one tool call: ``running`` until its result arrives."""

    status: str
    input: dict[str, Any] | None = None
    output: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status}
        if self.input is not None:
            result["input"] = self.input
        if self.output is not None:
            result["output"] = self.output
        return result


@dataclass
class ToolUpdatedEvent:
    call_id: str
    tool: str
    state: ToolState
    type: str = field(default="tool.updated", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "callID": self.call_id,
            "tool": self.tool,
            "state": self.state.to_dict(),
        }


@dataclass
class DoneEvent:
    """Final event of a successful stream."""

    text: str
    reasoning: str
    tools: list[ToolUpdatedEvent]
    metrics: dict[str, Any]
    usage: dict[str, int] | None = None
    type: str = field(default="done", init=False)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.type,
            "text": self.text,
            "reasoning": self.reasoning,
            "tools": [
                {"callID": tool.call_id, "tool": tool.tool, "state": tool.state.to_dict()}
                for tool in self.tools
            ],
        }
        if self.usage is not None:
            result["usage"] = self.usage
        result["metrics"] = self.metrics
        return result


@dataclass
class ErrorEvent:
    """Final event of a failed stream."""

    tag: str
    message: str
    hint: str | None = None
    type: str = field(default="error", init=False)

    def to_dict(self) -> dict[str, Any]:
        result = {"type": self.type, "tag": self.tag, "message": self.message}
        if self.hint is not None:
            result["hint"] = self.hint
        return result


StreamEvent = Union[
    MetaEvent, TextDeltaEvent, ReasoningDeltaEvent, ToolUpdatedEvent, DoneEvent, ErrorEvent
]


def to_sse(event: StreamEvent) -> str:
    """Format an event as one SSE frame."""
    return f"event: {event.type}\ndata: {json.dumps(event.to_dict())}\n\n"


def encode_sse(event: StreamEvent) -> bytes:
    return to_sse(event).encode("utf-8")


def parse_sse(payload: str) -> list[dict[str, Any]]:
    """Decode the JSON payloads of a sequence of SSE frames."""
    events = []
    for frame in payload.split("\n\n"):
        for line in frame.strip().splitlines():
            if line.startswith("data: "):
                events.append(json.loads(line[len("data: "):]))
                break
    return events
