"""
The collection tool suite: read, grep, glob and list.

``run_tool`` is the single dispatch point used by every tool provider. It
validates raw arguments, applies the configured limits and turns advisory
failures (invalid arguments, paths outside the sandbox) into plain-text
output the model can react to. Anything else propagates.
"""

from __future__ import annotations

from typing import Any, Callable, NamedTuple

from pydantic import BaseModel, ValidationError

from sourcefs.config import ToolsConfig
from sourcefs.errors import PathEscapeError
from sourcefs.tools.base import ToolContext, ToolOutput
from sourcefs.tools.glob import GlobParameters, execute_glob
from sourcefs.tools.grep import GrepParameters, execute_grep
from sourcefs.tools.listing import ListParameters, execute_list
from sourcefs.tools.read import ReadParameters, execute_read


class ToolSpec(NamedTuple):
    name: str
    parameters: type[BaseModel]
    execute: Callable[[Any, ToolContext, ToolsConfig], ToolOutput]


TOOL_SPECS: dict[str, ToolSpec] = {
    "read": ToolSpec(
        "read",
        ReadParameters,
        lambda params, context, config: execute_read(
            params,
            context,
            max_lines=config.max_read_lines,
            max_bytes=config.max_read_bytes,
            max_line_length=config.max_line_length,
        ),
    ),
    "grep": ToolSpec(
        "grep",
        GrepParameters,
        lambda params, context, config: execute_grep(
            params,
            context,
            max_results=config.grep_max_results,
            max_line_length=config.grep_max_line_length,
        ),
    ),
    "glob": ToolSpec(
        "glob",
        GlobParameters,
        lambda params, context, config: execute_glob(
            params, context, max_results=config.glob_max_results
        ),
    ),
    "list": ToolSpec(
        "list",
        ListParameters,
        lambda params, context, config: execute_list(params, context),
    ),
}

TOOL_NAMES = tuple(TOOL_SPECS)


def format_validation_error(tool_name: str, error: ValidationError) -> str:
    details = "; ".join(
        f"{'.'.join(str(part) for part in item['loc']) or 'arguments'}: {item['msg']}"
        for item in error.errors()
    )
    return f"Invalid arguments for {tool_name}: {details}"


def run_tool(
    tool_name: str,
    arguments: dict[str, Any],
    context: ToolContext,
    config: ToolsConfig | None = None,
) -> ToolOutput:
    """
    Validate ``arguments`` and run one tool of the suite.

    Args:
        tool_name: One of ``read``, ``grep``, ``glob`` or ``list``.
        arguments: Raw tool arguments as produced by the model.
        context: Sandbox root and VFS instance to operate on.
        config: Tool limits. Defaults to ``ToolsConfig()``.

    Returns:
        The tool output. Unknown tools, invalid arguments and sandbox escapes
        are reported as output text rather than raised.
    """
    spec = TOOL_SPECS.get(tool_name)
    if spec is None:
        return ToolOutput(
            title=tool_name,
            output=f"Unknown tool: {tool_name}. Available tools: {', '.join(TOOL_NAMES)}",
        )

    try:
        params = spec.parameters.model_validate(arguments or {})
    except ValidationError as e:
        return ToolOutput(title=tool_name, output=format_validation_error(tool_name, e))

    try:
        return spec.execute(params, context, config or ToolsConfig())
    except PathEscapeError as e:
        return ToolOutput(title=tool_name, output=e.message)
