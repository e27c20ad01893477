"""
Base classes and shared helpers for SourceFS tool definitions.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from sourcefs.sandboxes.virtual_sandbox import VirtualSandbox
from sourcefs.virtual_fs import VfsRegistry, VirtualFS


@dataclass
class ToolContext:
    """Where a tool runs: a sandbox root inside one registered VFS instance."""

    base_path: str
    vfs_instance_id: str
    registry: VfsRegistry

    @property
    def vfs(self) -> VirtualFS:
        return self.registry.get(self.vfs_instance_id)

    @property
    def sandbox(self) -> VirtualSandbox:
        return VirtualSandbox(self.base_path, self.vfs)


@dataclass
class ToolOutput:
    """Result of a tool invocation."""

    title: str
    output: str
    metadata: dict[str, Any] = field(default_factory=dict)
    # Base64 file attachments, e.g. images and PDFs returned by the read tool
    attachments: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "title": self.title,
            "output": self.output,
            "metadata": self.metadata,
        }
        if self.attachments:
            result["attachments"] = self.attachments
        return result


class BaseToolProvider(ABC):
    """Abstract base class for tool providers that generate agent-specific tool definitions."""

    def __init__(self, context: ToolContext):
        """
        Initialize the tool provider.

        Args:
            context: The sandbox root and VFS instance the tools operate on.
        """
        self.context = context

    @abstractmethod
    def get_tool_definitions(self) -> list[dict[str, Any]]:
        """
        Get tool definitions in the format expected by the target agent framework.

        Returns:
            List of tool definitions.
        """
        pass

    @abstractmethod
    def execute_tool(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """
        Execute a tool call and return the result.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Tool arguments.

        Returns:
            String result to return to the agent.
        """
        pass


# =============================================================================
# Helpers
# =============================================================================

_GLOB_ESCAPED = set("\\.^$+{}()|[]")


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """
    Compile a glob pattern into an anchored regular expression.

    ``**`` matches any sequence including ``/``, ``*`` any sequence without
    ``/`` and ``?`` a single non-separator character. Every other regex
    metacharacter is matched literally.
    """
    parts = ["^"]
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
            continue
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char in _GLOB_ESCAPED:
            parts.append("\\" + char)
        else:
            parts.append(char)
        i += 1
    parts.append("$")
    return re.compile("".join(parts))


def is_binary(content: bytes) -> bool:
    """A file is treated as binary when it contains a zero byte."""
    return b"\x00" in content


def format_size(size: int) -> str:
    """Format bytes as human-readable size."""
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    unit_index = 0
    while value >= 1024 and unit_index < len(units) - 1:
        value /= 1024
        unit_index += 1
    if unit_index == 0:
        return f"{int(value)} {units[unit_index]}"
    return f"{value:.1f} {units[unit_index]}"
