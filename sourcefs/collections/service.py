"""
Collection assembler: loads a set of resources into one virtual filesystem.

Each resource is imported under ``/<fsName>`` of a fresh VFS instance, its
provenance is recorded in the ``CollectionMetadataStore`` and a block of
agent instructions (paths, provenance and citation rules) is generated for
it. A failed load releases everything acquired so far before raising.
"""

from __future__ import annotations

import asyncio
import json
import os
import posixpath
import time
from typing import Any, Protocol
from urllib.parse import quote

from sourcefs.collections.metadata import CollectionMetadataStore
from sourcefs.config import SourceFSConfig
from sourcefs.errors import CollectionError, CommonHints, get_error_hint, get_error_message
from sourcefs.git import get_head_branch, get_head_commit
from sourcefs.metrics import Metrics
from sourcefs.prompts import FS_RESOURCE_SYSTEM_NOTE
from sourcefs.resources.schema import GitResource, NpmResource
from sourcefs.types import (
    CollectionResult,
    VirtualCollectionMetadata,
    VirtualizedResource,
    VirtualResourceMetadata,
)
from sourcefs.validation import parse_npm_reference
from sourcefs.virtual_fs import VfsRegistry

ANON_PREFIX = "anonymous:"
NPM_ANON_PREFIX = f"{ANON_PREFIX}npm:"
NPM_META_FILE = ".sourcefs-npm-meta.json"


class ResourceLoader(Protocol):
    async def load(self, name: str, quiet: bool = False) -> VirtualizedResource: ...


def get_collection_key(resource_names: list[str]) -> str:
    """Deterministic key for a set of resource names, independent of order."""
    return "+".join(sorted(set(resource_names)))


def encode_uri_component(value: str) -> str:
    return quote(value, safe="-_.!~*'()")


def encode_path_segments(value: str) -> str:
    return "/".join(encode_uri_component(segment) for segment in value.split("/"))


def trim_git_suffix(url: str) -> str:
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url.rstrip("/")


def _npm_citation_alias(metadata: VirtualResourceMetadata | None) -> str | None:
    if metadata is None or not metadata.package:
        return None
    return f"npm:{metadata.package}@{metadata.version or 'latest'}"


def create_instruction_block(
    resource: VirtualizedResource, metadata: VirtualResourceMetadata | None = None
) -> str:
    """Render the agent instructions for one resource of a collection."""
    is_git = resource.kind == "git"
    is_npm = resource.kind == "npm"
    url = metadata.url if metadata else None
    git_ref = (metadata.branch or metadata.commit) if metadata else None

    github_prefix = None
    if is_git and url and git_ref:
        github_prefix = f"{trim_git_suffix(url)}/blob/{encode_uri_component(git_ref)}"
    npm_alias = _npm_citation_alias(metadata) if is_npm else None

    lines = [
        f"## Resource: {resource.name}",
        FS_RESOURCE_SYSTEM_NOTE,
        f"Path: ./{resource.fs_name}",
    ]

    if is_git and metadata:
        if url:
            lines.append(f"Repo URL: {trim_git_suffix(url)}")
        if metadata.branch:
            lines.append(f"Repo Branch: {metadata.branch}")
        if metadata.commit:
            lines.append(f"Repo Commit: {metadata.commit}")

    if is_npm and metadata:
        if metadata.package:
            lines.append(f"NPM Package: {metadata.package}")
        if metadata.version:
            lines.append(f"NPM Version: {metadata.version}")
        if url:
            lines.append(f"NPM URL: {url}")
    if npm_alias:
        lines.append(f"NPM Citation Alias: {npm_alias}")

    if github_prefix:
        lines.append(f"GitHub Blob Prefix: {github_prefix}")
        lines.append(
            f"GitHub Citation Rule: Convert virtual paths under ./{resource.fs_name}/ to "
            "repo-relative paths, then encode each path segment for GitHub URLs (example "
            f'segment: "+page.server.js" -> "{encode_uri_component("+page.server.js")}").'
        )
        lines.append(
            f"GitHub Citation Example: {github_prefix}/"
            f"{encode_path_segments('src/routes/blog/+page.server.js')}"
        )

    if not is_git:
        lines.append("Citation Rule: Cite local file paths only for this resource (no GitHub URL).")
    if npm_alias:
        lines.append(
            f'NPM Citation Rule: In "Sources", cite npm files using "{npm_alias}/<file>" '
            f'(for example, "{npm_alias}/README.md"). Do not cite encoded virtual folder names.'
        )

    lines.extend(f"Focus: ./{resource.fs_name}/{sub_path}" for sub_path in resource.repo_sub_paths)
    if resource.special_agent_instructions:
        lines.append(f"Notes: {resource.special_agent_instructions}")

    return "\n".join(line for line in lines if line)


def _read_npm_meta(resource_path: str) -> dict[str, Any] | None:
    try:
        with open(os.path.join(resource_path, NPM_META_FILE), encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


async def _run_resource_cleanup(resource: VirtualizedResource) -> None:
    try:
        await resource.cleanup()
    except Exception as e:
        Metrics.error("resources.cleanup_failed", resource=resource.name, error=Metrics.error_info(e))


class CollectionsService:
    """Assembles resources into virtual collections."""

    def __init__(
        self,
        config: SourceFSConfig,
        resources: ResourceLoader,
        registry: VfsRegistry,
        metadata_store: CollectionMetadataStore,
    ):
        """
        Initialize the collection assembler.

        Args:
            config: Configuration; supplies resource definitions and collection settings.
            resources: Loader resolving resource names to ``VirtualizedResource``.
            registry: Owner of the VFS instances created for collections.
            metadata_store: Where collection provenance is recorded.
        """
        self.config = config
        self.resources = resources
        self.registry = registry
        self.metadata_store = metadata_store

    def _debug_log(self, message: str) -> None:
        """Log a debug message if debug mode is enabled."""
        if self.config.debug:
            print(f"[SourceFS DEBUG] {message}")

    def _should_ignore(self, relative_path: str) -> bool:
        ignored = self.config.collection.ignored_directories
        return any(part in ignored for part in relative_path.split("/"))

    # =========================================================================
    # Load Steps
    # =========================================================================

    async def _load_resource(self, name: str, quiet: bool) -> VirtualizedResource:
        try:
            return await self.resources.load(name, quiet=quiet)
        except Exception as cause:
            hint = get_error_hint(cause) or (
                f'{CommonHints.CLEAR_CACHE} Check that the resource "{name}" is correctly configured.'
            )
            raise CollectionError(
                f'Failed to load resource "{name}": {get_error_message(cause)}',
                hint=hint,
                cause=cause,
            ) from cause

    async def _resolve_resource_path(self, resource: VirtualizedResource) -> str:
        try:
            return await resource.get_absolute_directory_path()
        except Exception as cause:
            raise CollectionError(
                f'Failed to get path for resource "{resource.name}"',
                hint=CommonHints.CLEAR_CACHE,
                cause=cause,
            ) from cause

    async def _virtualize_resource(
        self,
        resource: VirtualizedResource,
        resource_path: str,
        virtual_path: str,
        vfs_instance_id: str,
    ) -> None:
        vfs = self.registry.get(vfs_instance_id)
        try:
            await asyncio.to_thread(
                vfs.import_directory,
                resource_path,
                virtual_path,
                self._should_ignore,
            )
        except Exception as cause:
            raise CollectionError(
                f'Failed to virtualize resource "{resource.name}"',
                hint=CommonHints.CLEAR_CACHE,
                cause=cause,
            ) from cause

    async def _build_metadata(
        self, resource: VirtualizedResource, resource_path: str
    ) -> VirtualResourceMetadata:
        metadata = VirtualResourceMetadata(
            name=resource.name,
            fs_name=resource.fs_name,
            kind=resource.kind,
            path=resource_path,
            repo_sub_paths=list(resource.repo_sub_paths),
        )
        definition = self.config.get_resource(resource.name)

        if resource.kind == "npm":
            configured = definition if isinstance(definition, NpmResource) else None
            anonymous = (
                parse_npm_reference(resource.name[len(ANON_PREFIX) :])
                if resource.name.startswith(NPM_ANON_PREFIX)
                else None
            )
            cached = await asyncio.to_thread(_read_npm_meta, resource_path) or {}
            metadata.package = (
                (configured.package if configured else None)
                or cached.get("packageName")
                or (anonymous.package_name if anonymous else None)
            )
            metadata.version = (
                (configured.version if configured else None)
                or cached.get("resolvedVersion")
                or (anonymous.version if anonymous else None)
            )
            metadata.url = cached.get("packageUrl") or (anonymous.package_url if anonymous else None)
            return metadata

        if resource.kind != "git":
            return metadata

        configured = definition if isinstance(definition, GitResource) else None
        if configured:
            metadata.url = configured.url
        elif resource.name.startswith(ANON_PREFIX):
            metadata.url = resource.name[len(ANON_PREFIX) :]
        metadata.branch = (
            configured.branch if configured else await asyncio.to_thread(get_head_branch, resource_path)
        )
        metadata.commit = await asyncio.to_thread(get_head_commit, resource_path)
        return metadata

    # =========================================================================
    # Public API
    # =========================================================================

    async def load(self, resource_names: list[str], quiet: bool = False) -> CollectionResult:
        """
        Load ``resource_names`` into a new virtual collection.

        Returns:
            The collection. Its ``cleanup`` disposes the VFS instance, removes
            the recorded metadata and runs every resource cleanup; it is safe
            to call more than once.

        Raises:
            CollectionError: If no resources were given or any resource fails
                to load, resolve or import.
        """
        unique_names = list(dict.fromkeys(resource_names))
        if not unique_names:
            raise CollectionError(
                "Cannot create collection with no resources",
                hint=f"{CommonHints.LIST_RESOURCES} {CommonHints.ADD_RESOURCE}",
            )

        Metrics.info("collections.load", resources=unique_names, quiet=quiet)
        start = time.perf_counter()

        sorted_names = sorted(unique_names)
        key = get_collection_key(sorted_names)
        root_path = self.config.collection.root_path
        vfs_instance_id = self.registry.create()
        loaded: list[VirtualizedResource] = []

        def cleanup_virtual() -> None:
            self.registry.dispose(vfs_instance_id)
            self.metadata_store.clear(vfs_instance_id)

        async def cleanup_resources() -> None:
            for resource in loaded:
                if resource.cleanup is not None:
                    await _run_resource_cleanup(resource)

        try:
            try:
                self.registry.get(vfs_instance_id).mkdir(root_path, recursive=True)
            except OSError as cause:
                raise CollectionError(
                    f'Failed to initialize virtual collection root: "{root_path}"',
                    hint="Check that the virtual filesystem is available.",
                    cause=cause,
                ) from cause

            for name in sorted_names:
                loaded.append(await self._load_resource(name, quiet))

            resources_metadata: list[VirtualResourceMetadata] = []
            for resource in loaded:
                resource_path = await self._resolve_resource_path(resource)
                virtual_path = posixpath.join(root_path, resource.fs_name)
                self.registry.get(vfs_instance_id).rm(virtual_path, recursive=True, force=True)

                self._debug_log(f"load() importing {resource_path} into {virtual_path}")
                await self._virtualize_resource(resource, resource_path, virtual_path, vfs_instance_id)
                resources_metadata.append(await self._build_metadata(resource, resource_path))

            self.metadata_store.set(
                VirtualCollectionMetadata(
                    vfs_instance_id=vfs_instance_id,
                    collection_key=key,
                    resources=resources_metadata,
                )
            )
        except asyncio.CancelledError:
            cleanup_virtual()
            await asyncio.shield(cleanup_resources())
            raise
        except Exception as cause:
            cleanup_virtual()
            await cleanup_resources()
            Metrics.error("collections.failed", collectionKey=key, error=Metrics.error_info(cause))
            if isinstance(cause, CollectionError):
                raise
            raise CollectionError(
                "Failed to load resource collection",
                hint=CommonHints.CLEAR_CACHE,
                cause=cause,
            ) from cause

        metadata_by_name = {entry.name: entry for entry in resources_metadata}
        instructions = "\n\n".join(
            create_instruction_block(resource, metadata_by_name.get(resource.name))
            for resource in loaded
        )

        cleaned_up = False

        async def cleanup() -> None:
            nonlocal cleaned_up
            if cleaned_up:
                return
            cleaned_up = True
            cleanup_virtual()
            await cleanup_resources()

        Metrics.info(
            "collections.loaded",
            collectionKey=key,
            vfsId=vfs_instance_id,
            resources=len(loaded),
            ms=round((time.perf_counter() - start) * 1000),
        )

        return CollectionResult(
            root_path=root_path,
            agent_instructions=instructions,
            vfs_instance_id=vfs_instance_id,
            collection_key=key,
            resource_names=sorted_names,
            cleanup=cleanup,
        )
