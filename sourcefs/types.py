"""
Core types for SourceFS - question answering over virtualized source trees.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

ResourceKind = Literal["git", "npm", "local"]


# =============================================================================
# Virtual Filesystem
# =============================================================================


@dataclass(frozen=True)
class VfsStat:
    """A read-only projection of a virtual filesystem entry."""

    is_file: bool
    is_directory: bool
    size: int
    mtime_ms: float
    is_symlink: bool = False


@dataclass(frozen=True)
class VfsDirEntry:
    """A single child returned by ``VirtualFS.readdir``."""

    name: str
    is_file: bool
    is_directory: bool
    is_symlink: bool = False


# =============================================================================
# Resources and Collections
# =============================================================================


@dataclass
class VirtualizedResource:
    """A loaded resource, ready to be copied into a collection's VFS.

    ``get_absolute_directory_path`` resolves the real on-disk directory of the
    resource. ``cleanup``, when set, is awaited once the collection that
    loaded the resource is torn down.
    """

    name: str
    fs_name: str
    kind: ResourceKind
    get_absolute_directory_path: Callable[[], Awaitable[str]]
    repo_sub_paths: list[str] = field(default_factory=list)
    special_agent_instructions: str = ""
    cleanup: Callable[[], Awaitable[None]] | None = None


@dataclass
class CollectionResult:
    """The assembled, queryable view of a set of resources."""

    root_path: str
    agent_instructions: str
    vfs_instance_id: str
    collection_key: str
    resource_names: list[str]
    cleanup: Callable[[], Awaitable[None]]


@dataclass
class VirtualResourceMetadata:
    """Provenance of one resource inside a virtual collection."""

    name: str
    fs_name: str
    kind: ResourceKind
    path: str
    repo_sub_paths: list[str] = field(default_factory=list)
    url: str | None = None
    branch: str | None = None
    commit: str | None = None
    package: str | None = None
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "fsName": self.fs_name,
            "type": self.kind,
            "path": self.path,
            "repoSubPaths": list(self.repo_sub_paths),
        }
        for key, value in (
            ("url", self.url),
            ("branch", self.branch),
            ("commit", self.commit),
            ("package", self.package),
            ("version", self.version),
        ):
            if value is not None:
                result[key] = value
        return result


@dataclass
class VirtualCollectionMetadata:
    """Metadata recorded for a loaded virtual collection."""

    vfs_instance_id: str
    collection_key: str
    created_at: float = field(default_factory=time.time)
    resources: list[VirtualResourceMetadata] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "vfsId": self.vfs_instance_id,
            "collectionKey": self.collection_key,
            "createdAt": self.created_at,
            "resources": [resource.to_dict() for resource in self.resources],
        }
