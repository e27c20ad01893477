"""The SourceFS question-answering agent."""

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
from sourcefs.agent.loop import AgentLoop, AgentLoopOptions, AgentLoopResult

__all__ = [
    "AgentLoop",
    "AgentLoopOptions",
    "AgentLoopResult",
    # Events
    "AgentEvent",
    "TextDelta",
    "ReasoningDelta",
    "ToolCall",
    "ToolResult",
    "Finish",
    "Error",
    "Usage",
]
