"""
List tool: immediate children of a directory.
"""

from __future__ import annotations

import posixpath
from typing import Any

from pydantic import BaseModel, Field

from sourcefs.tools.base import ToolContext, ToolOutput, format_size


class ListParameters(BaseModel):
    """Input schema for listing a directory."""

    path: str = Field(description="The directory path to list")


def _empty(title: str, output: str) -> ToolOutput:
    return ToolOutput(
        title=title,
        output=output,
        metadata={"entries": [], "fileCount": 0, "directoryCount": 0},
    )


def execute_list(params: ListParameters, context: ToolContext) -> ToolOutput:
    """List a directory, directories first, then files, each alphabetically."""
    vfs = context.vfs
    resolved_path = context.sandbox.resolve_path(params.path)

    try:
        stats = vfs.stat(resolved_path)
    except OSError:
        return _empty(params.path, f"Directory not found: {params.path}")
    if not stats.is_directory:
        return _empty(params.path, f"Path is not a directory: {params.path}")

    entries: list[dict[str, Any]] = []
    for dirent in vfs.readdir(resolved_path):
        entry: dict[str, Any] = {"name": dirent.name, "type": "other"}
        if dirent.is_directory:
            entry["type"] = "directory"
        elif dirent.is_file:
            entry["type"] = "file"
            try:
                entry["size"] = vfs.stat(posixpath.join(resolved_path, dirent.name)).size
            except OSError:
                pass
        entries.append(entry)

    entries.sort(key=lambda entry: (entry["type"] != "directory", entry["name"].lower(), entry["name"]))

    file_count = sum(1 for entry in entries if entry["type"] == "file")
    directory_count = sum(1 for entry in entries if entry["type"] == "directory")

    output_lines = []
    for entry in entries:
        if entry["type"] == "directory":
            output_lines.append(f"[DIR]  {entry['name']}/")
        elif entry["type"] == "file":
            size = f" ({format_size(entry['size'])})" if "size" in entry else ""
            output_lines.append(f"[FILE] {entry['name']}{size}")
        else:
            output_lines.append(f"[???]  {entry['name']}")

    output_lines.append("")
    output_lines.append(
        f"Total: {len(entries)} items ({directory_count} directories, {file_count} files)"
    )

    return ToolOutput(
        title=params.path,
        output="\n".join(output_lines),
        metadata={
            "entries": entries,
            "fileCount": file_count,
            "directoryCount": directory_count,
        },
    )
