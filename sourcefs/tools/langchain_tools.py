"""
LangChain-compatible tool definitions for collection search.

Provides tools that can be bound to LangChain chat models via:
- LangChainToolProvider class for direct integration
- get_langchain_tools() convenience function

Example usage:
    from sourcefs.tools.base import ToolContext
    from sourcefs.tools.langchain_tools import LangChainToolProvider

    context = ToolContext(base_path="/", vfs_instance_id=vfs_id, registry=registry)
    provider = LangChainToolProvider(context)
    model = model.bind_tools(provider.get_tools())
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from sourcefs.config import ToolsConfig
from sourcefs.prompts import TOOL_DESCRIPTIONS
from sourcefs.tools.base import BaseToolProvider, ToolContext
from sourcefs.tools.suite import TOOL_NAMES, TOOL_SPECS, format_validation_error, run_tool

if TYPE_CHECKING:
    from langchain_core.tools import BaseTool


class LangChainToolProvider(BaseToolProvider):
    """LangChain-compatible tool provider for a collection."""

    def __init__(self, context: ToolContext, config: ToolsConfig | None = None):
        """
        Initialize the LangChain tool provider.

        Args:
            context: The sandbox root and VFS instance the tools operate on.
            config: Tool limits. Defaults to ``ToolsConfig()``.
        """
        super().__init__(context)
        self.config = config or ToolsConfig()

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        """
        Get tool definitions as dictionaries (for compatibility with base class).

        For LangChain usage, prefer get_tools() which returns actual Tool objects.
        """
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "args_schema": tool.args_schema,
            }
            for tool in self.get_tools()
        ]

    def get_tools(self) -> list[BaseTool]:
        """
        Get LangChain Tool objects for binding to a chat model.

        Returns:
            StructuredTool instances for read, grep, glob and list.
        """
        from langchain_core.tools import StructuredTool

        funcs = {
            "read": self._read,
            "grep": self._grep,
            "glob": self._glob,
            "list": self._list,
        }
        return [
            StructuredTool.from_function(
                func=funcs[name],
                name=name,
                description=TOOL_DESCRIPTIONS[name],
                args_schema=TOOL_SPECS[name].parameters,
                handle_validation_error=self._validation_handler(name),
            )
            for name in TOOL_NAMES
        ]

    def execute_tool(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """
        Execute a tool call and return the tool's text output.

        Args:
            tool_name: One of read, grep, glob or list.
            arguments: Tool arguments.

        Returns:
            The text the model sees as the tool result.
        """
        return run_tool(tool_name, arguments, self.context, self.config).output

    @staticmethod
    def _validation_handler(tool_name: str):
        def handle(error: ValidationError) -> str:
            return format_validation_error(tool_name, error)

        return handle

    def _read(
        self,
        path: str,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> str:
        """Read a file from the collection."""
        return self.execute_tool("read", {"path": path, "offset": offset, "limit": limit})

    def _grep(
        self,
        pattern: str,
        path: Optional[str] = None,
        include: Optional[str] = None,
    ) -> str:
        """Search file contents in the collection."""
        return self.execute_tool("grep", {"pattern": pattern, "path": path, "include": include})

    def _glob(self, pattern: str, path: Optional[str] = None) -> str:
        """Find files in the collection by pattern."""
        return self.execute_tool("glob", {"pattern": pattern, "path": path})

    def _list(self, path: str) -> str:
        """List a directory in the collection."""
        return self.execute_tool("list", {"path": path})


def get_langchain_tools(
    context: ToolContext, config: ToolsConfig | None = None
) -> list[BaseTool]:
    """
    Convenience function to get LangChain tools for a collection.

    Args:
        context: The sandbox root and VFS instance the tools operate on.
        config: Tool limits.

    Returns:
        List of LangChain StructuredTool instances.
    """
    return LangChainToolProvider(context, config).get_tools()
