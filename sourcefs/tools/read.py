"""
Read tool: file contents with line numbers, truncation and special file handling.
"""

from __future__ import annotations

import base64
import posixpath
from typing import Optional

from pydantic import BaseModel, Field

from sourcefs.tools.base import ToolContext, ToolOutput, is_binary

MAX_LINES = 2000
MAX_BYTES = 50 * 1024
MAX_LINE_LENGTH = 2000
MAX_SUGGESTIONS = 5

IMAGE_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".ico": "image/x-icon",
    ".svg": "image/svg+xml",
}

PDF_EXTENSIONS = {".pdf"}


class ReadParameters(BaseModel):
    """Input schema for reading a file from the collection."""

    path: str = Field(description="The absolute path to the file to read")
    offset: Optional[int] = Field(
        default=None,
        ge=0,
        description="The line number to start reading from (0-based)",
    )
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="The number of lines to read (defaults to 2000)",
    )


def _suggest(context: ToolContext, resolved_path: str) -> list[str]:
    directory = posixpath.dirname(resolved_path)
    stem = posixpath.basename(resolved_path).lower()[:3]
    try:
        names = [entry.name for entry in context.vfs.readdir(directory)]
    except OSError:
        return []
    return [name for name in names if stem in name.lower()][:MAX_SUGGESTIONS]


def _attachment(mime: str, content: bytes) -> dict[str, str]:
    return {
        "type": "file",
        "mime": mime,
        "data": base64.b64encode(content).decode("ascii"),
    }


def execute_read(
    params: ReadParameters,
    context: ToolContext,
    max_lines: int = MAX_LINES,
    max_bytes: int = MAX_BYTES,
    max_line_length: int = MAX_LINE_LENGTH,
) -> ToolOutput:
    """
    Read a file inside the sandbox.

    Text files come back line-numbered (five-wide right-aligned numbers and a
    tab), windowed by ``offset``/``limit`` and bounded by ``max_bytes``.
    Images and PDFs come back as base64 attachments, other binary files as a
    placeholder. A missing file yields a not-found message with suggestions.

    Raises:
        PathEscapeError: If the path lies outside the sandbox.
    """
    vfs = context.vfs
    resolved_path = context.sandbox.resolve_path_with_symlinks(params.path)
    name = posixpath.basename(resolved_path)

    if not vfs.is_file(resolved_path):
        if vfs.is_dir(resolved_path):
            return ToolOutput(
                title=params.path,
                output=f"Path is a directory: {params.path}. Use the list tool to see its contents.",
                metadata={"lines": 0, "truncated": False},
            )
        suggestions = _suggest(context, resolved_path)
        suggestion_text = ""
        if suggestions:
            suggestion_text = "\nDid you mean:\n" + "\n".join(f"  - {s}" for s in suggestions)
        return ToolOutput(
            title=params.path,
            output=f"File not found: {params.path}{suggestion_text}",
            metadata={"lines": 0, "truncated": False},
        )

    extension = posixpath.splitext(resolved_path)[1].lower()
    content = vfs.read_file_bytes(resolved_path)

    if extension in IMAGE_MIME_TYPES:
        return ToolOutput(
            title=params.path,
            output=f"[Image file: {name}]",
            metadata={"lines": 0, "truncated": False, "isImage": True},
            attachments=[_attachment(IMAGE_MIME_TYPES[extension], content)],
        )

    if extension in PDF_EXTENSIONS:
        return ToolOutput(
            title=params.path,
            output=f"[PDF file: {name}]",
            metadata={"lines": 0, "truncated": False, "isPdf": True},
            attachments=[_attachment("application/pdf", content)],
        )

    if is_binary(content):
        return ToolOutput(
            title=params.path,
            output=f"[Binary file: {name}]",
            metadata={"lines": 0, "truncated": False, "isBinary": True},
        )

    all_lines = content.decode("utf-8", errors="replace").split("\n")
    offset = params.offset or 0
    limit = params.limit or max_lines
    end_line = min(len(all_lines), offset + limit)

    output_lines: list[str] = []
    total_bytes = 0
    truncated_by_bytes = False
    truncated_by_lines = False

    for line in all_lines[offset:end_line]:
        if len(line) > max_line_length:
            line = line[:max_line_length] + "..."
        line_bytes = len(line.encode("utf-8"))
        if total_bytes + line_bytes > max_bytes:
            truncated_by_bytes = True
            break
        output_lines.append(line)
        total_bytes += line_bytes

    if len(output_lines) < end_line - offset or end_line < len(all_lines):
        # Byte truncation wins when both limits apply
        truncated_by_lines = not truncated_by_bytes and len(output_lines) >= limit

    formatted = "\n".join(
        f"{index + offset + 1:>5}\t{line}" for index, line in enumerate(output_lines)
    )

    truncation_message = ""
    if truncated_by_bytes or truncated_by_lines:
        remaining = len(all_lines) - offset - len(output_lines)
        if remaining > 0:
            truncation_message = (
                f"\n\n[Truncated: {remaining} more lines. "
                f"Use offset={offset + len(output_lines)} to continue reading.]"
            )

    return ToolOutput(
        title=params.path,
        output=formatted + truncation_message,
        metadata={
            "lines": len(output_lines),
            "truncated": truncated_by_bytes or truncated_by_lines,
            "truncatedByLines": truncated_by_lines,
            "truncatedByBytes": truncated_by_bytes,
        },
    )
