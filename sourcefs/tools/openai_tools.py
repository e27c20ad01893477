"""
OpenAI-compatible tool definitions for collection search.
"""

from __future__ import annotations

import json
from typing import Any

from sourcefs.config import ToolsConfig
from sourcefs.prompts import TOOL_DESCRIPTIONS
from sourcefs.tools.base import BaseToolProvider, ToolContext
from sourcefs.tools.suite import run_tool


class OpenAIToolProvider(BaseToolProvider):
    """OpenAI function calling compatible tool provider for a collection."""

    def __init__(
        self,
        context: ToolContext,
        tool_prefix: str = "sourcefs",
        config: ToolsConfig | None = None,
    ):
        """
        Initialize the OpenAI tool provider.

        Args:
            context: The sandbox root and VFS instance the tools operate on.
            tool_prefix: Prefix for tool names (e.g., "sourcefs_read").
            config: Tool limits. Defaults to ``ToolsConfig()``.
        """
        super().__init__(context)
        self.tool_prefix = tool_prefix
        self.config = config or ToolsConfig()

    def _tool_name(self, name: str) -> str:
        """Generate full tool name with prefix."""
        return f"{self.tool_prefix}_{name}"

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        """Get OpenAI function calling compatible tool definitions."""
        return [
            # Read file
            {
                "type": "function",
                "function": {
                    "name": self._tool_name("read"),
                    "description": TOOL_DESCRIPTIONS["read"],
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "path": {
                                "type": "string",
                                "description": "The absolute path to the file to read",
                            },
                            "offset": {
                                "type": "integer",
                                "description": "The line number to start reading from (0-based)",
                            },
                            "limit": {
                                "type": "integer",
                                "description": "The number of lines to read (defaults to 2000)",
                            },
                        },
                        "required": ["path"],
                    },
                },
            },
            # Search contents
            {
                "type": "function",
                "function": {
                    "name": self._tool_name("grep"),
                    "description": TOOL_DESCRIPTIONS["grep"],
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "pattern": {
                                "type": "string",
                                "description": "The regex pattern to search for in file contents",
                            },
                            "path": {
                                "type": "string",
                                "description": "The directory to search in. Defaults to the collection root.",
                            },
                            "include": {
                                "type": "string",
                                "description": 'File pattern to include in the search (e.g. "*.js", "src/**/*.ts")',
                            },
                        },
                        "required": ["pattern"],
                    },
                },
            },
            # Find files
            {
                "type": "function",
                "function": {
                    "name": self._tool_name("glob"),
                    "description": TOOL_DESCRIPTIONS["glob"],
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "pattern": {
                                "type": "string",
                                "description": 'The glob pattern to match files against (e.g. "**/*.ts", "src/*.md")',
                            },
                            "path": {
                                "type": "string",
                                "description": "The directory to search in. Defaults to the collection root.",
                            },
                        },
                        "required": ["pattern"],
                    },
                },
            },
            # List directory
            {
                "type": "function",
                "function": {
                    "name": self._tool_name("list"),
                    "description": TOOL_DESCRIPTIONS["list"],
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "path": {
                                "type": "string",
                                "description": "The directory path to list",
                            },
                        },
                        "required": ["path"],
                    },
                },
            },
        ]

    def execute_tool(self, tool_name: str, arguments: dict[str, Any] | str) -> str:
        """
        Execute a tool call and return the result as JSON string.

        Args:
            tool_name: Name of the tool (with or without prefix).
            arguments: Tool arguments, as a dict or the raw JSON string from the API.

        Returns:
            JSON string with ``title``, ``output`` and ``metadata``.

        Raises:
            Exception: Failures outside the tool itself (for example a disposed
                VFS instance) propagate to the caller.
        """
        # Strip prefix if present
        if tool_name.startswith(f"{self.tool_prefix}_"):
            tool_name = tool_name[len(self.tool_prefix) + 1 :]

        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as e:
                return json.dumps(
                    {
                        "status": "error",
                        "message": f"Invalid tool arguments: {str(e)}",
                    }
                )

        result = run_tool(tool_name, arguments, self.context, self.config)
        return json.dumps(result.to_dict())


def get_openai_tools(
    context: ToolContext, tool_prefix: str = "sourcefs"
) -> list[dict[str, Any]]:
    """
    Convenience function to get OpenAI-compatible tool definitions.

    Args:
        context: The sandbox root and VFS instance.
        tool_prefix: Prefix for tool names.

    Returns:
        List of tool definitions for OpenAI function calling.
    """
    return OpenAIToolProvider(context, tool_prefix).get_tool_definitions()


def execute_openai_tool(
    context: ToolContext,
    tool_name: str,
    arguments: dict[str, Any] | str,
    tool_prefix: str = "sourcefs",
) -> str:
    """
    Convenience function to execute an OpenAI tool call.

    Args:
        context: The sandbox root and VFS instance.
        tool_name: Name of the tool.
        arguments: Tool arguments.
        tool_prefix: Prefix for tool names.

    Returns:
        JSON string result.
    """
    return OpenAIToolProvider(context, tool_prefix).execute_tool(tool_name, arguments)
