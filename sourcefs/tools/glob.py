"""
Glob tool: find files by path pattern.
"""

from __future__ import annotations

import posixpath
from typing import Optional

from pydantic import BaseModel, Field

from sourcefs.tools.base import ToolContext, ToolOutput, glob_to_regex

MAX_RESULTS = 100


class GlobParameters(BaseModel):
    """Input schema for finding files by pattern."""

    pattern: str = Field(
        description='The glob pattern to match files against (e.g. "**/*.ts", "src/*.md")'
    )
    path: Optional[str] = Field(
        default=None,
        description="The directory to search in. Defaults to the collection root.",
    )


def execute_glob(
    params: GlobParameters,
    context: ToolContext,
    max_results: int = MAX_RESULTS,
) -> ToolOutput:
    """List files whose path relative to the search directory matches the pattern.

    Results are newest first and expressed relative to the sandbox root.
    """
    vfs = context.vfs
    search_path = context.sandbox.resolve_path(params.path) if params.path else context.base_path
    display_path = params.path or "."

    try:
        stats = vfs.stat(search_path)
    except OSError:
        stats = None
    if stats is None or not stats.is_directory:
        message = (
            f"Directory not found: {display_path}"
            if stats is None
            else f"Path is not a directory: {display_path}"
        )
        return ToolOutput(
            title=params.pattern,
            output=message,
            metadata={"count": 0, "truncated": False},
        )

    regex = glob_to_regex(params.pattern)
    files: list[tuple[str, float]] = []
    truncated = False

    for file_path in vfs.list_files_recursive(search_path):
        if not regex.match(posixpath.relpath(file_path, search_path)):
            continue
        if len(files) >= max_results:
            truncated = True
            break
        try:
            mtime_ms = vfs.stat(file_path).mtime_ms
        except OSError:
            mtime_ms = 0
        files.append((file_path, mtime_ms))

    if not files:
        return ToolOutput(
            title=params.pattern,
            output="No files found matching pattern.",
            metadata={"count": 0, "truncated": False},
        )

    files.sort(key=lambda item: item[1], reverse=True)
    output_lines = [posixpath.relpath(path, context.base_path) for path, _ in files]

    if truncated:
        output_lines.append("")
        output_lines.append(
            f"[Truncated: Results limited to {max_results} files. "
            "Use a more specific pattern for more targeted results.]"
        )

    return ToolOutput(
        title=params.pattern,
        output="\n".join(output_lines),
        metadata={"count": len(files), "truncated": truncated},
    )
