"""Server-Sent Events encoding of agent answers."""

from sourcefs.stream.events import (
    DoneEvent,
    ErrorEvent,
    MetaEvent,
    ReasoningDeltaEvent,
    StreamEvent,
    TextDeltaEvent,
    ToolState,
    ToolUpdatedEvent,
    parse_sse,
    to_sse,
)
from sourcefs.stream.service import SseStream

__all__ = [
    "SseStream",
    "StreamEvent",
    "MetaEvent",
    "TextDeltaEvent",
    "ReasoningDeltaEvent",
    "ToolUpdatedEvent",
    "ToolState",
    "DoneEvent",
    "ErrorEvent",
    "to_sse",
    "parse_sse",
]
