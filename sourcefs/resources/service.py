"""
Resource loader: turns a resource name into a ``VirtualizedResource``.

Names resolve against the configured resources first. Unknown names that
are HTTPS git URLs or npm references become anonymous resources. Local
directories are loaded in place; git and npm resources are materialized on
disk by a ``ResourceFetcher``.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from sourcefs.config import SourceFSConfig
from sourcefs.errors import CommonHints, ResourceError
from sourcefs.git import run_git
from sourcefs.metrics import Metrics
from sourcefs.resources.schema import (
    GitResource,
    LocalResource,
    NpmResource,
    ResourceDefinition,
)
from sourcefs.types import VirtualizedResource
from sourcefs.validation import parse_npm_reference, resource_name_to_key, validate_git_url

ANON_PREFIX = "anonymous:"
ANON_DIRECTORY_PREFIX = "anonymous-"
DEFAULT_ANON_BRANCH = "main"


def is_anonymous_resource(name: str) -> bool:
    return name.startswith(ANON_PREFIX)


def create_anonymous_directory_key(reference: str) -> str:
    digest = hashlib.sha256(reference.encode("utf-8")).hexdigest()[:12]
    return f"{ANON_DIRECTORY_PREFIX}{digest}"


def create_anonymous_resource(reference: str) -> ResourceDefinition | None:
    """Build a definition for an ad-hoc git URL or npm reference."""
    git_url = validate_git_url(reference)
    if git_url.valid:
        return GitResource(
            name=f"{ANON_PREFIX}{git_url.value}",
            url=git_url.value,
            branch=DEFAULT_ANON_BRANCH,
        )

    npm = parse_npm_reference(reference)
    if npm is not None:
        return NpmResource(
            name=f"{ANON_PREFIX}{npm.reference}",
            package=npm.package_name,
            version=npm.version,
        )

    return None


# =============================================================================
# Fetchers
# =============================================================================


class ResourceFetcher(ABC):
    """Materializes a remote resource into a directory on disk."""

    @abstractmethod
    async def fetch(self, definition: ResourceDefinition, destination: Path, quiet: bool) -> str:
        """
        Fetch ``definition`` into ``destination``.

        Returns:
            The absolute directory path holding the resource's files.

        Raises:
            ResourceError: If the resource cannot be fetched.
        """
        pass


class GitCloneFetcher(ResourceFetcher):
    """Shallow-clones a git resource, refreshing an existing checkout in place."""

    def _sync(self, definition: GitResource, destination: Path, quiet: bool) -> str:
        target = str(destination)
        if (destination / ".git").is_dir():
            run_git("fetch", "--depth", "1", "origin", definition.branch, cwd=target)
            run_git("reset", "--hard", "FETCH_HEAD", cwd=target)
        else:
            destination.parent.mkdir(parents=True, exist_ok=True)
            args = ["clone", "--depth", "1", "--branch", definition.branch]
            if quiet:
                args.append("--quiet")
            run_git(*args, definition.url, target)
        return target

    async def fetch(self, definition: ResourceDefinition, destination: Path, quiet: bool) -> str:
        if not isinstance(definition, GitResource):
            raise ResourceError(f'Resource "{definition.name}" is not a git resource')
        try:
            return await asyncio.to_thread(self._sync, definition, destination, quiet)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            hint = CommonHints.CHECK_BRANCH if "branch" in stderr.lower() else CommonHints.CHECK_URL
            raise ResourceError(
                f'Failed to fetch git resource "{definition.name}": {stderr or e}',
                hint=hint,
                cause=e,
            ) from e
        except OSError as e:
            raise ResourceError(
                f'Failed to fetch git resource "{definition.name}": {e}',
                hint=CommonHints.CHECK_NETWORK,
                cause=e,
            ) from e


# =============================================================================
# Service
# =============================================================================


class ResourcesService:
    """Loads resources by name for the collection assembler."""

    def __init__(
        self,
        config: SourceFSConfig,
        fetchers: dict[str, ResourceFetcher] | None = None,
    ):
        """
        Initialize the resource loader.

        Args:
            config: Configuration holding resource definitions and the resources directory.
            fetchers: Fetchers by resource type. Git defaults to ``GitCloneFetcher``;
                npm has no default fetcher.
        """
        self.config = config
        self.fetchers: dict[str, ResourceFetcher] = {"git": GitCloneFetcher()}
        if fetchers:
            self.fetchers.update(fetchers)

    def _debug_log(self, message: str) -> None:
        """Log a debug message if debug mode is enabled."""
        if self.config.debug:
            print(f"[SourceFS DEBUG] {message}")

    def resolve_definition(self, reference: str) -> ResourceDefinition:
        """
        Resolve a name to a configured or anonymous resource definition.

        Raises:
            ResourceError: If the name matches nothing.
        """
        definition = self.config.get_resource(reference)
        if definition is not None:
            return definition

        anonymous = create_anonymous_resource(reference)
        if anonymous is not None:
            return anonymous

        raise ResourceError(
            f'Resource "{reference}" not found in config',
            hint=f"{CommonHints.LIST_RESOURCES} {CommonHints.ADD_RESOURCE}",
        )

    def _directory_for(self, definition: ResourceDefinition) -> Path:
        base = self.config.get_resources_directory()
        if is_anonymous_resource(definition.name):
            source = definition.url if isinstance(definition, GitResource) else definition.name
            return base / create_anonymous_directory_key(source)
        return base / resource_name_to_key(definition.name)

    async def load(self, name: str, quiet: bool = False) -> VirtualizedResource:
        """Load the resource called ``name``."""
        definition = self.resolve_definition(name)
        self._debug_log(f"load() resolved {name!r} to a {definition.type} resource")

        if isinstance(definition, LocalResource):
            return self._load_local(definition)
        return await self._load_fetched(definition, quiet)

    def _load_local(self, definition: LocalResource) -> VirtualizedResource:
        path = os.path.abspath(os.path.expanduser(definition.path))

        async def get_path() -> str:
            if not os.path.isdir(path):
                raise ResourceError(
                    f'Local resource "{definition.name}" does not exist: {path}',
                    hint=CommonHints.CHECK_CONFIG,
                )
            return path

        return VirtualizedResource(
            name=definition.name,
            fs_name=resource_name_to_key(definition.name),
            kind="local",
            get_absolute_directory_path=get_path,
            special_agent_instructions=definition.special_notes or "",
        )

    async def _load_fetched(
        self, definition: GitResource | NpmResource, quiet: bool
    ) -> VirtualizedResource:
        fetcher = self.fetchers.get(definition.type)
        if fetcher is None:
            raise ResourceError(
                f'No fetcher is configured for {definition.type} resources ("{definition.name}")',
                hint=CommonHints.CHECK_CONFIG,
            )

        destination = self._directory_for(definition)
        async with Metrics.span("resources.fetch", resource=definition.name, type=definition.type):
            path = await fetcher.fetch(definition, destination, quiet)
        ephemeral = is_anonymous_resource(definition.name)

        async def get_path() -> str:
            return path

        async def cleanup() -> None:
            await asyncio.to_thread(shutil.rmtree, path, True)

        return VirtualizedResource(
            name=definition.name,
            fs_name=resource_name_to_key(definition.name),
            kind=definition.type,
            get_absolute_directory_path=get_path,
            repo_sub_paths=list(definition.search_paths) if isinstance(definition, GitResource) else [],
            special_agent_instructions=definition.special_notes or "",
            cleanup=cleanup if ephemeral else None,
        )
