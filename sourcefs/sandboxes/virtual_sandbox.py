"""
Path sandbox over a SourceFS virtual filesystem.
"""

from __future__ import annotations

from sourcefs.errors import PathNotFoundError, SourceFSError
from sourcefs.sandboxes.base import BaseSandbox, resolve_sandbox_path
from sourcefs.virtual_fs import VirtualFS


class VirtualSandbox(BaseSandbox):
    """Confines path resolution to ``base_path`` inside one ``VirtualFS``."""

    def __init__(self, base_path: str, vfs: VirtualFS):
        super().__init__(base_path)
        self.vfs = vfs

    def resolve_path_with_symlinks(self, requested_path: str) -> str:
        resolved = self.resolve_path(requested_path)
        try:
            real = self.vfs.realpath(resolved)
        except OSError:
            return resolved
        # A symlink may point anywhere in the tree; its target must stay inside too
        return resolve_sandbox_path(self.base_path, real)

    def exists(self, requested_path: str) -> bool:
        try:
            return self.vfs.exists(self.resolve_path(requested_path))
        except (OSError, SourceFSError):
            return False

    def is_dir(self, requested_path: str) -> bool:
        try:
            return self.vfs.stat(self.resolve_path(requested_path)).is_directory
        except (OSError, SourceFSError):
            return False

    def is_file(self, requested_path: str) -> bool:
        try:
            return self.vfs.stat(self.resolve_path(requested_path)).is_file
        except (OSError, SourceFSError):
            return False

    def validate_path(self, requested_path: str) -> str:
        resolved = self.resolve_path(requested_path)
        if not self.vfs.exists(resolved):
            raise PathNotFoundError(requested_path)
        return resolved
