"""Read/grep/glob/list tools for SourceFS agents."""

from sourcefs.tools.base import BaseToolProvider, ToolContext, ToolOutput
from sourcefs.tools.glob import GlobParameters, execute_glob
from sourcefs.tools.grep import GrepParameters, execute_grep
from sourcefs.tools.langchain_tools import LangChainToolProvider, get_langchain_tools
from sourcefs.tools.listing import ListParameters, execute_list
from sourcefs.tools.openai_tools import (
    OpenAIToolProvider,
    execute_openai_tool,
    get_openai_tools,
)
from sourcefs.tools.read import ReadParameters, execute_read
from sourcefs.tools.suite import TOOL_NAMES, run_tool

__all__ = [
    "BaseToolProvider",
    "ToolContext",
    "ToolOutput",
    "TOOL_NAMES",
    "run_tool",
    # Tools
    "ReadParameters",
    "execute_read",
    "GrepParameters",
    "execute_grep",
    "GlobParameters",
    "execute_glob",
    "ListParameters",
    "execute_list",
    # OpenAI
    "OpenAIToolProvider",
    "get_openai_tools",
    "execute_openai_tool",
    # LangChain
    "LangChainToolProvider",
    "get_langchain_tools",
]
