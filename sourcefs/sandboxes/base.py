"""
Abstract base class for SourceFS path sandboxes.
"""

from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod

from sourcefs.errors import PathEscapeError


def _escapes(relative: str) -> bool:
    return relative == ".." or relative.startswith("../") or posixpath.isabs(relative)


def resolve_sandbox_path(base_path: str, requested_path: str) -> str:
    """
    Resolve ``requested_path`` against ``base_path`` and enforce containment.

    Absolute requests are normalized on their own; relative requests are
    joined onto the base first.

    Returns:
        The normalized absolute path, guaranteed to be ``base_path`` or below it.

    Raises:
        PathEscapeError: If the resolved path lies outside ``base_path``.
    """
    normalized_base = posixpath.normpath(posixpath.join("/", base_path))
    resolved = posixpath.normpath(posixpath.join(normalized_base, requested_path))
    if resolved.startswith("//"):
        resolved = "/" + resolved.lstrip("/")

    if _escapes(posixpath.relpath(resolved, normalized_base)):
        raise PathEscapeError(requested_path, base_path)

    return resolved


class BaseSandbox(ABC):
    """Abstract base class for a path sandbox rooted at ``base_path``."""

    def __init__(self, base_path: str):
        self.base_path = base_path

    def resolve_path(self, requested_path: str) -> str:
        """Resolve a path inside the sandbox, raising ``PathEscapeError`` on escape."""
        return resolve_sandbox_path(self.base_path, requested_path)

    def relative_path(self, resolved_path: str) -> str:
        """Express a resolved path relative to the sandbox root."""
        base = posixpath.normpath(posixpath.join("/", self.base_path))
        return posixpath.relpath(resolved_path, base)

    @abstractmethod
    def resolve_path_with_symlinks(self, requested_path: str) -> str:
        """Resolve a path and follow symlinks to their real target when possible."""
        pass

    @abstractmethod
    def exists(self, requested_path: str) -> bool:
        """Check if a path exists. Never raises."""
        pass

    @abstractmethod
    def is_dir(self, requested_path: str) -> bool:
        """Check if path is a directory. Never raises."""
        pass

    @abstractmethod
    def is_file(self, requested_path: str) -> bool:
        """Check if path is a file. Never raises."""
        pass

    @abstractmethod
    def validate_path(self, requested_path: str) -> str:
        """
        Resolve a path that must exist.

        Raises:
            PathEscapeError: If the path lies outside the sandbox.
            PathNotFoundError: If the path does not exist.
        """
        pass
