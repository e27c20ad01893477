"""
SourceFS - question answering over source code and documentation.

SourceFS materializes git repositories, npm packages and local directories
into an isolated in-memory filesystem per question, then lets an LLM agent
explore it with read/grep/glob/list tools.

Eager Usage:
    from sourcefs import SourceFS, SourceFSConfig

    async with SourceFS(SourceFSConfig.from_env()) as sourcefs:
        result = await sourcefs.ask("How do I define a route?", ["svelte"])
        print(result.answer)

Streaming Usage (Server-Sent Events):
    stream = await sourcefs.ask_stream(
        "What does load() return?",
        ["https://github.com/sveltejs/kit"],
    )
    async for frame in stream:
        response.write(frame)

Standalone Tools:
    from sourcefs import VfsRegistry
    from sourcefs.tools import ToolContext, execute_openai_tool

    registry = VfsRegistry()
    vfs_id = registry.create()
    registry.get(vfs_id).import_directory("./docs", "/docs")

    context = ToolContext(base_path="/docs", vfs_instance_id=vfs_id, registry=registry)
    result = execute_openai_tool(context, "sourcefs_grep", {"pattern": "load"})
"""

from sourcefs.config import SourceFSConfig
from sourcefs.errors import (
    AgentError,
    CollectionError,
    CommonHints,
    InvalidProviderError,
    PathEscapeError,
    PathNotFoundError,
    PricingError,
    ResourceError,
    SourceFSError,
    format_error_for_display,
)
from sourcefs.metrics import Metrics
from sourcefs.prompts import AGENT_SYSTEM_PROMPT, get_agent_system_prompt
from sourcefs.service import AskResult, SourceFS, create_sourcefs
from sourcefs.types import (
    CollectionResult,
    VfsDirEntry,
    VfsStat,
    VirtualCollectionMetadata,
    VirtualizedResource,
    VirtualResourceMetadata,
)
from sourcefs.virtual_fs import VfsRegistry, VirtualFS

__version__ = "0.0.1"

__all__ = [
    # Core classes
    "SourceFS",
    "SourceFSConfig",
    "AskResult",
    "VirtualFS",
    "VfsRegistry",
    # Factory functions
    "create_sourcefs",
    # Prompts
    "AGENT_SYSTEM_PROMPT",
    "get_agent_system_prompt",
    # Logging
    "Metrics",
    # Errors
    "SourceFSError",
    "PathEscapeError",
    "PathNotFoundError",
    "ResourceError",
    "CollectionError",
    "AgentError",
    "InvalidProviderError",
    "PricingError",
    "CommonHints",
    "format_error_for_display",
    # Types
    "VfsStat",
    "VfsDirEntry",
    "VirtualizedResource",
    "CollectionResult",
    "VirtualResourceMetadata",
    "VirtualCollectionMetadata",
]
