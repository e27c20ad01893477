"""
Grep tool: regular-expression search over file contents.
"""

from __future__ import annotations

import posixpath
import re
from typing import Callable, NamedTuple, Optional

from pydantic import BaseModel, Field

from sourcefs.tools.base import ToolContext, ToolOutput, glob_to_regex, is_binary

MAX_RESULTS = 100
MAX_LINE_LENGTH = 200


class GrepParameters(BaseModel):
    """Input schema for searching file contents."""

    pattern: str = Field(description="The regex pattern to search for in file contents")
    path: Optional[str] = Field(
        default=None,
        description="The directory to search in. Defaults to the collection root.",
    )
    include: Optional[str] = Field(
        default=None,
        description='File pattern to include in the search (e.g. "*.js", "src/**/*.ts")',
    )


class _Match(NamedTuple):
    path: str
    line_number: int
    line_text: str
    mtime_ms: float


def build_include_matcher(pattern: str) -> Callable[[str], bool]:
    """Match a relative path against an include glob.

    Globs without a ``/`` also match against the file's basename.
    """
    regex = glob_to_regex(pattern)
    if "/" not in pattern:
        return lambda relative: bool(
            regex.match(posixpath.basename(relative)) or regex.match(relative)
        )
    return lambda relative: bool(regex.match(relative))


def _empty(title: str, output: str) -> ToolOutput:
    return ToolOutput(
        title=title,
        output=output,
        metadata={"matchCount": 0, "fileCount": 0, "truncated": False},
    )


def execute_grep(
    params: GrepParameters,
    context: ToolContext,
    max_results: int = MAX_RESULTS,
    max_line_length: int = MAX_LINE_LENGTH,
) -> ToolOutput:
    """Search every text file under ``params.path`` for ``params.pattern``."""
    vfs = context.vfs
    search_path = context.sandbox.resolve_path(params.path) if params.path else context.base_path
    display_path = params.path or "."

    try:
        stats = vfs.stat(search_path)
    except OSError:
        return _empty(params.pattern, f"Directory not found: {display_path}")
    if not stats.is_directory:
        return _empty(params.pattern, f"Path is not a directory: {display_path}")

    try:
        regex = re.compile(params.pattern)
    except re.error:
        return _empty(params.pattern, "Invalid regex pattern.")

    include = build_include_matcher(params.include) if params.include else None
    results: list[_Match] = []

    for file_path in vfs.list_files_recursive(search_path):
        if len(results) > max_results:
            break
        if include and not include(posixpath.relpath(file_path, search_path)):
            continue
        try:
            content = vfs.read_file_bytes(file_path)
            mtime_ms = vfs.stat(file_path).mtime_ms
        except OSError:
            continue
        if is_binary(content):
            continue

        lines = content.decode("utf-8", errors="replace").split("\n")
        for index, line in enumerate(lines):
            if not regex.search(line):
                continue
            results.append(_Match(file_path, index + 1, line, mtime_ms))
            if len(results) > max_results:
                break

    if not results:
        return _empty(params.pattern, "No matches found.")

    truncated = len(results) > max_results
    display = sorted(results[:max_results], key=lambda match: match.mtime_ms, reverse=True)

    groups: dict[str, list[_Match]] = {}
    for match in display:
        relative = posixpath.relpath(match.path, context.base_path)
        groups.setdefault(relative, []).append(match)

    output_lines: list[str] = []
    for relative, matches in groups.items():
        output_lines.append(f"{relative}:")
        for match in matches:
            text = match.line_text
            if len(text) > max_line_length:
                text = text[:max_line_length] + "..."
            output_lines.append(f"  {match.line_number}: {text}")
        output_lines.append("")

    if truncated:
        output_lines.append(
            f"[Truncated: Results limited to {max_results} matches. "
            "Narrow your search pattern for more specific results.]"
        )

    return ToolOutput(
        title=params.pattern,
        output="\n".join(output_lines).strip(),
        metadata={
            "matchCount": len(display),
            "fileCount": len(groups),
            "truncated": truncated,
        },
    )
