"""
Events produced by the agent loop.

``AgentEvent`` is a closed union: consumers match every member explicitly
and treat anything else as a programming error.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Union


@dataclass
class Usage:
    """Token counters reported by the model provider. Unknown counters stay None."""

    input_tokens: int | None = None
    output_tokens: int | None = None
    reasoning_tokens: int | None = None
    total_tokens: int | None = None

    def has_values(self) -> bool:
        return any(getattr(self, f.name) is not None for f in fields(self))

    def to_dict(self) -> dict[str, int]:
        """Wire form: camelCase keys, unknown counters omitted."""
        result = {}
        for key, value in (
            ("inputTokens", self.input_tokens),
            ("outputTokens", self.output_tokens),
            ("reasoningTokens", self.reasoning_tokens),
            ("totalTokens", self.total_tokens),
        ):
            if value is not None:
                result[key] = value
        return result


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ReasoningDelta:
    text: str


@dataclass(frozen=True)
class ToolCall:
    tool_name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    tool_name: str
    output: str


@dataclass(frozen=True)
class Finish:
    finish_reason: str
    usage: Usage | None = None


@dataclass(frozen=True)
class Error:
    error: BaseException


AgentEvent = Union[TextDelta, ReasoningDelta, ToolCall, ToolResult, Finish, Error]
