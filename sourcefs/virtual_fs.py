"""
In-memory virtual filesystem for SourceFS collections.

Each collection gets its own ``VirtualFS`` instance, identified by an opaque
string id and owned by a ``VfsRegistry``. Paths are POSIX paths, always
normalized against ``/`` before lookup, and errors are reported with the
builtin ``OSError`` subclasses so callers can treat a virtual tree like a
real one.
"""

from __future__ import annotations

import errno
import os
import posixpath
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, NamedTuple

from sourcefs.types import VfsDirEntry, VfsStat

# Maximum number of symlinks followed while resolving a single path
MAX_SYMLINK_DEPTH = 40

DEFAULT_INSTANCE_ID = "default"


def normalize_path(path: str) -> str:
    """Normalize ``path`` to an absolute POSIX path resolved against ``/``."""
    resolved = posixpath.normpath(posixpath.join("/", path or "/"))
    # normpath keeps a leading double slash as POSIX allows it
    if resolved.startswith("//"):
        resolved = "/" + resolved.lstrip("/")
    return resolved


def _now_ms() -> float:
    return time.time() * 1000


def _not_found(path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, "No such file or directory", path)


def _not_a_directory(path: str) -> NotADirectoryError:
    return NotADirectoryError(errno.ENOTDIR, "Not a directory", path)


def _is_a_directory(path: str) -> IsADirectoryError:
    return IsADirectoryError(errno.EISDIR, "Is a directory", path)


def _exists(path: str) -> FileExistsError:
    return FileExistsError(errno.EEXIST, "File exists", path)


# =============================================================================
# Nodes
# =============================================================================


@dataclass
class _File:
    content: bytes
    mtime_ms: float = field(default_factory=_now_ms)


@dataclass
class _Directory:
    children: dict[str, "_Node"] = field(default_factory=dict)
    mtime_ms: float = field(default_factory=_now_ms)


@dataclass
class _Symlink:
    target: str
    mtime_ms: float = field(default_factory=_now_ms)


_Node = _File | _Directory | _Symlink


class _Located(NamedTuple):
    """Result of walking a path: the parent directory, entry name and entry."""

    parent: _Directory | None
    name: str
    node: _Node | None
    path: str


class VirtualFS:
    """A single in-memory filesystem tree."""

    def __init__(self):
        self._root = _Directory()

    # =========================================================================
    # Path Resolution
    # =========================================================================

    def _locate(self, path: str, follow_last: bool = True) -> _Located:
        """Walk ``path`` following intermediate symlinks.

        The final component is followed only when ``follow_last`` is set. A
        missing final component is not an error: it is returned with
        ``node=None`` so callers can create it. A missing or non-directory
        intermediate component raises.
        """
        original = normalize_path(path)
        parts = [part for part in original.split("/") if part]
        if not parts:
            return _Located(None, "", self._root, "/")

        node: _Node = self._root
        current = "/"
        links_followed = 0
        index = 0

        while index < len(parts):
            if not isinstance(node, _Directory):
                raise _not_a_directory(original)

            name = parts[index]
            child = node.children.get(name)
            is_last = index == len(parts) - 1

            if isinstance(child, _Symlink) and (follow_last or not is_last):
                links_followed += 1
                if links_followed > MAX_SYMLINK_DEPTH:
                    raise OSError(errno.ELOOP, "Too many levels of symbolic links", original)
                target = normalize_path(posixpath.join(current, child.target))
                parts = [part for part in target.split("/") if part] + parts[index + 1 :]
                if not parts:
                    return _Located(None, "", self._root, "/")
                node = self._root
                current = "/"
                index = 0
                continue

            if child is None:
                if is_last:
                    return _Located(node, name, None, posixpath.join(current, name))
                raise _not_found(original)

            if is_last:
                return _Located(node, name, child, posixpath.join(current, name))

            node = child
            current = posixpath.join(current, name)
            index += 1

        # Unreachable: the loop always returns on the last component
        raise _not_found(original)

    def _require(self, path: str, follow_last: bool = True) -> _Located:
        located = self._locate(path, follow_last=follow_last)
        if located.node is None:
            raise _not_found(normalize_path(path))
        return located

    def _require_parent(self, path: str) -> _Located:
        located = self._locate(path, follow_last=False)
        if located.parent is None:
            # Only the root has no parent
            raise _exists(normalize_path(path))
        return located

    # =========================================================================
    # Queries
    # =========================================================================

    def _stat_node(self, node: _Node, is_symlink: bool = False) -> VfsStat:
        if isinstance(node, _File):
            return VfsStat(True, False, len(node.content), node.mtime_ms, is_symlink)
        if isinstance(node, _Directory):
            return VfsStat(False, True, 0, node.mtime_ms, is_symlink)
        return VfsStat(False, False, len(node.target.encode("utf-8")), node.mtime_ms, True)

    def stat(self, path: str) -> VfsStat:
        """Stat ``path``, following symlinks."""
        located = self._require(path)
        return self._stat_node(located.node)

    def lstat(self, path: str) -> VfsStat:
        """Stat ``path`` without following a final symlink."""
        located = self._require(path, follow_last=False)
        return self._stat_node(located.node)

    def exists(self, path: str) -> bool:
        try:
            self.stat(path)
            return True
        except OSError:
            return False

    def is_file(self, path: str) -> bool:
        try:
            return self.stat(path).is_file
        except OSError:
            return False

    def is_dir(self, path: str) -> bool:
        try:
            return self.stat(path).is_directory
        except OSError:
            return False

    def realpath(self, path: str) -> str:
        """Return the canonical path of ``path`` with all symlinks resolved."""
        return self._require(path).path

    def readlink(self, path: str) -> str:
        located = self._require(path, follow_last=False)
        if not isinstance(located.node, _Symlink):
            raise OSError(errno.EINVAL, "Invalid argument", normalize_path(path))
        return located.node.target

    def readdir(self, path: str) -> list[VfsDirEntry]:
        """List the immediate children of a directory, sorted by name."""
        located = self._require(path)
        directory = located.node
        if not isinstance(directory, _Directory):
            raise _not_a_directory(normalize_path(path))

        entries = []
        for name in sorted(directory.children):
            child = directory.children[name]
            if isinstance(child, _Symlink):
                try:
                    target = self.stat(posixpath.join(located.path, name))
                except OSError:
                    entries.append(VfsDirEntry(name, False, False, True))
                    continue
                entries.append(VfsDirEntry(name, target.is_file, target.is_directory, True))
            else:
                entries.append(
                    VfsDirEntry(name, isinstance(child, _File), isinstance(child, _Directory))
                )
        return entries

    def read_file_bytes(self, path: str) -> bytes:
        located = self._require(path)
        if isinstance(located.node, _Directory):
            raise _is_a_directory(normalize_path(path))
        return located.node.content

    def read_file(self, path: str, encoding: str = "utf-8") -> str:
        return self.read_file_bytes(path).decode(encoding, errors="replace")

    def list_files_recursive(self, root: str = "/") -> list[str]:
        """Return the absolute path of every file below ``root``.

        Symlinked directories are descended once; paths are reported under
        the directory they were reached through.
        """
        files: list[str] = []
        visited: set[str] = set()
        stack = [normalize_path(root)]

        while stack:
            current = stack.pop()
            try:
                canonical = self.realpath(current)
                if canonical in visited:
                    continue
                visited.add(canonical)
                entries = self.readdir(current)
            except OSError:
                continue

            directories = []
            for entry in entries:
                entry_path = posixpath.join(current, entry.name)
                if entry.is_directory:
                    directories.append(entry_path)
                elif entry.is_file:
                    files.append(entry_path)
            stack.extend(reversed(directories))

        return files

    # =========================================================================
    # Mutations
    # =========================================================================

    def mkdir(self, path: str, recursive: bool = False) -> None:
        normalized = normalize_path(path)
        if not recursive:
            located = self._require_parent(normalized)
            if located.node is not None:
                raise _exists(normalized)
            located.parent.children[located.name] = _Directory()
            return

        prefix = "/"
        for part in [part for part in normalized.split("/") if part]:
            prefix = posixpath.join(prefix, part)
            located = self._locate(prefix)
            if located.node is None:
                located.parent.children[located.name] = _Directory()
            elif not isinstance(located.node, _Directory):
                raise _exists(prefix)

    def write_file(self, path: str, data: str | bytes, mtime_ms: float | None = None) -> None:
        """Create or replace a file. The parent directory must exist."""
        normalized = normalize_path(path)
        content = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        located = self._locate(normalized)
        if located.parent is None or isinstance(located.node, _Directory):
            raise _is_a_directory(normalized)
        stamp = _now_ms() if mtime_ms is None else mtime_ms
        located.parent.children[located.name] = _File(content, stamp)

    def symlink(self, target: str, link_path: str) -> None:
        """Create ``link_path`` pointing at ``target``.

        Absolute targets are normalized; relative targets are stored verbatim
        and resolved against the link's directory on access.
        """
        normalized = normalize_path(link_path)
        stored = normalize_path(target) if posixpath.isabs(target) else target
        located = self._require_parent(normalized)
        if located.node is not None:
            raise _exists(normalized)
        located.parent.children[located.name] = _Symlink(stored)

    def rm(self, path: str, recursive: bool = False, force: bool = False) -> None:
        normalized = normalize_path(path)
        try:
            located = self._require(normalized, follow_last=False)
        except FileNotFoundError:
            if force:
                return
            raise

        if isinstance(located.node, _Directory) and not recursive:
            raise _is_a_directory(normalized)
        if located.parent is None:
            self._root = _Directory()
            return
        del located.parent.children[located.name]

    def import_directory(
        self,
        source_path: str,
        destination_path: str,
        ignore: Callable[[str], bool] | None = None,
    ) -> None:
        """Copy a real directory tree into this filesystem.

        The walk is depth-first. ``ignore`` receives each entry's path
        relative to ``source_path`` (with ``/`` separators); ignored
        directories are never descended. Files keep their on-disk
        modification time, symlinks are recreated with their original
        target, and unreadable entries are skipped.
        """
        base = os.path.abspath(source_path)
        destination = normalize_path(destination_path)
        should_ignore = ignore or (lambda _relative: False)

        if not os.path.isdir(base):
            raise _not_a_directory(base) if os.path.exists(base) else _not_found(base)

        self.mkdir(destination, recursive=True)

        def walk(current: str) -> None:
            try:
                with os.scandir(current) as iterator:
                    dirents = sorted(iterator, key=lambda dirent: dirent.name)
            except OSError:
                return

            for dirent in dirents:
                relative = os.path.relpath(dirent.path, base).replace(os.sep, "/")
                if should_ignore(relative):
                    continue
                target_path = posixpath.join(destination, relative)

                try:
                    if dirent.is_symlink():
                        link_target = os.readlink(dirent.path)
                        if link_target:
                            self.symlink(link_target, target_path)
                    elif dirent.is_dir():
                        self.mkdir(target_path, recursive=True)
                        walk(dirent.path)
                    elif dirent.is_file():
                        with open(dirent.path, "rb") as handle:
                            content = handle.read()
                        mtime_ms = dirent.stat().st_mtime_ns / 1_000_000
                        self.write_file(target_path, content, mtime_ms=mtime_ms)
                except OSError:
                    continue

        walk(base)


# =============================================================================
# Registry
# =============================================================================


class VfsRegistry:
    """Owns every ``VirtualFS`` instance in the process, keyed by id.

    Looking up an unknown or disposed id creates a fresh empty instance:
    ids are caller-chosen, so a lookup always yields a usable filesystem and
    never resurrects disposed content.
    """

    def __init__(self):
        self._instances: dict[str, VirtualFS] = {DEFAULT_INSTANCE_ID: VirtualFS()}

    def create(self) -> str:
        """Create a new instance and return its id."""
        instance_id = str(uuid.uuid4())
        self._instances[instance_id] = VirtualFS()
        return instance_id

    def get(self, instance_id: str | None = None) -> VirtualFS:
        key = instance_id or DEFAULT_INSTANCE_ID
        instance = self._instances.get(key)
        if instance is None:
            instance = VirtualFS()
            self._instances[key] = instance
        return instance

    def has(self, instance_id: str | None = None) -> bool:
        return (instance_id or DEFAULT_INSTANCE_ID) in self._instances

    def reset(self, instance_id: str | None = None) -> None:
        self._instances[instance_id or DEFAULT_INSTANCE_ID] = VirtualFS()

    def dispose(self, instance_id: str | None = None) -> None:
        """Drop an instance. Disposing an unknown id is a no-op."""
        self._instances.pop(instance_id or DEFAULT_INSTANCE_ID, None)

    def dispose_all(self) -> None:
        self._instances.clear()
        self._instances[DEFAULT_INSTANCE_ID] = VirtualFS()

    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._instances
