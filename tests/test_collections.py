"""
Tests for sourcefs.collections.

This module tests:
- Loading resources into a fresh VFS instance
- Collection key order-independence
- Cleanup after success and after partial failure
- Provenance metadata and agent instructions
"""

from unittest.mock import AsyncMock, patch

import pytest

from sourcefs.collections import CollectionMetadataStore, CollectionsService, get_collection_key
from sourcefs.collections.service import create_instruction_block, encode_uri_component
from sourcefs.config import SourceFSConfig
from sourcefs.errors import CollectionError
from sourcefs.types import VirtualizedResource, VirtualResourceMetadata
from sourcefs.virtual_fs import VfsRegistry
from tests.fakes import FakeLoader, make_resource


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config():
    return SourceFSConfig.default_local()


@pytest.fixture
def registry():
    return VfsRegistry()


@pytest.fixture
def metadata_store():
    return CollectionMetadataStore()


@pytest.fixture
def docs_dirs(tmp_path):
    first = tmp_path / "alpha"
    (first / "docs").mkdir(parents=True)
    (first / "docs" / "intro.md").write_text("# Alpha\n")
    (first / ".git").mkdir()
    (first / ".git" / "config").write_text("[core]\n")

    second = tmp_path / "beta"
    second.mkdir()
    (second / "README.md").write_text("# Beta\n")
    return first, second


def make_service(config, loader, registry, metadata_store):
    return CollectionsService(config, loader, registry, metadata_store)


# =============================================================================
# Key Tests
# =============================================================================


class TestCollectionKey:
    def test_order_independent(self):
        assert get_collection_key(["b", "a", "c"]) == get_collection_key(["c", "b", "a"]) == "a+b+c"

    def test_duplicates_collapse(self):
        assert get_collection_key(["a", "a", "b"]) == "a+b"

    def test_encode_uri_component(self):
        assert encode_uri_component("+page.server.js") == "%2Bpage.server.js"
        assert encode_uri_component("feature/x") == "feature%2Fx"


# =============================================================================
# Load Tests
# =============================================================================


class TestLoad:
    @pytest.mark.asyncio
    async def test_loads_resources_into_vfs(self, config, registry, metadata_store, docs_dirs):
        alpha, beta = docs_dirs
        loader = FakeLoader([make_resource("alpha", alpha), make_resource("beta", beta)])
        service = make_service(config, loader, registry, metadata_store)

        collection = await service.load(["beta", "alpha"])

        assert collection.collection_key == "alpha+beta"
        assert collection.resource_names == ["alpha", "beta"]
        assert collection.root_path == "/"
        assert loader.calls == ["alpha", "beta"]

        vfs = registry.get(collection.vfs_instance_id)
        assert sorted(vfs.list_files_recursive("/")) == ["/alpha/docs/intro.md", "/beta/README.md"]
        assert vfs.read_file("/alpha/docs/intro.md") == "# Alpha\n"

        metadata = metadata_store.get(collection.vfs_instance_id)
        assert metadata.collection_key == "alpha+beta"
        assert [entry.name for entry in metadata.resources] == ["alpha", "beta"]
        assert metadata.resources[0].path == str(alpha)

        assert "## Resource: alpha" in collection.agent_instructions
        assert "Path: ./beta" in collection.agent_instructions

    @pytest.mark.asyncio
    async def test_same_key_in_any_order(self, config, registry, metadata_store, docs_dirs):
        alpha, beta = docs_dirs
        loader = FakeLoader([make_resource("alpha", alpha), make_resource("beta", beta)])
        service = make_service(config, loader, registry, metadata_store)

        first = await service.load(["alpha", "beta"])
        second = await service.load(["beta", "alpha", "beta"])

        assert first.collection_key == second.collection_key
        assert first.vfs_instance_id != second.vfs_instance_id
        assert len(metadata_store.find_by_key("alpha+beta")) == 2

    @pytest.mark.asyncio
    async def test_empty_resource_list(self, config, registry, metadata_store):
        service = make_service(config, FakeLoader([]), registry, metadata_store)

        with pytest.raises(CollectionError) as exc_info:
            await service.load([])

        assert exc_info.value.message == "Cannot create collection with no resources"
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_unknown_resource(self, config, registry, metadata_store):
        service = make_service(config, FakeLoader([]), registry, metadata_store)

        with pytest.raises(CollectionError) as exc_info:
            await service.load(["missing"])

        assert exc_info.value.message.startswith('Failed to load resource "missing"')
        assert exc_info.value.hint == "Add it."
        assert len(registry) == 1
        assert len(metadata_store) == 0

    @pytest.mark.asyncio
    async def test_custom_ignored_directories(self, registry, metadata_store, docs_dirs):
        alpha, _beta = docs_dirs
        config = SourceFSConfig.default_local()
        config.collection.ignored_directories = (".git", "docs")
        service = make_service(config, FakeLoader([make_resource("alpha", alpha)]), registry, metadata_store)

        collection = await service.load(["alpha"])

        assert registry.get(collection.vfs_instance_id).list_files_recursive("/") == []


# =============================================================================
# Cleanup Tests
# =============================================================================


class TestCleanup:
    @pytest.mark.asyncio
    async def test_cleanup_releases_everything_once(self, config, registry, metadata_store, docs_dirs):
        alpha, _beta = docs_dirs
        resource_cleanup = AsyncMock()
        loader = FakeLoader([make_resource("alpha", alpha, cleanup=resource_cleanup)])
        service = make_service(config, loader, registry, metadata_store)

        collection = await service.load(["alpha"])
        await collection.cleanup()
        await collection.cleanup()

        assert not registry.has(collection.vfs_instance_id)
        assert metadata_store.get(collection.vfs_instance_id) is None
        resource_cleanup.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_while_virtualizing_releases_loaded_resources(
        self, config, registry, metadata_store, docs_dirs, tmp_path
    ):
        alpha, _beta = docs_dirs
        alpha_cleanup = AsyncMock()
        loader = FakeLoader(
            [
                make_resource("alpha", alpha, cleanup=alpha_cleanup),
                make_resource("beta", tmp_path / "does-not-exist"),
            ]
        )
        service = make_service(config, loader, registry, metadata_store)

        with pytest.raises(CollectionError) as exc_info:
            await service.load(["alpha", "beta"])

        assert exc_info.value.message == 'Failed to virtualize resource "beta"'
        alpha_cleanup.assert_awaited_once()
        assert len(registry) == 1
        assert len(metadata_store) == 0
        assert metadata_store.find_by_key("alpha+beta") == []

    @pytest.mark.asyncio
    async def test_cleanup_errors_are_swallowed(self, config, registry, metadata_store, docs_dirs, tmp_path):
        alpha, _beta = docs_dirs
        loader = FakeLoader(
            [
                make_resource("alpha", alpha, cleanup=AsyncMock(side_effect=RuntimeError("boom"))),
                make_resource("beta", tmp_path / "does-not-exist"),
            ]
        )
        service = make_service(config, loader, registry, metadata_store)

        with pytest.raises(CollectionError):
            await service.load(["alpha", "beta"])

    @pytest.mark.asyncio
    async def test_path_resolution_failure(self, config, registry, metadata_store):
        async def broken_path():
            raise OSError("disk gone")

        resource = VirtualizedResource(
            name="alpha", fs_name="alpha", kind="local", get_absolute_directory_path=broken_path
        )
        service = make_service(config, FakeLoader([resource]), registry, metadata_store)

        with pytest.raises(CollectionError) as exc_info:
            await service.load(["alpha"])

        assert exc_info.value.message == 'Failed to get path for resource "alpha"'
        assert len(registry) == 1


# =============================================================================
# Metadata and Instruction Tests
# =============================================================================


class TestProvenance:
    @pytest.mark.asyncio
    async def test_git_metadata(self, config, registry, metadata_store, docs_dirs):
        alpha, _beta = docs_dirs
        name = "anonymous:https://github.com/sveltejs/kit"
        loader = FakeLoader([make_resource(name, alpha, kind="git", fs_name="kit")])
        service = make_service(config, loader, registry, metadata_store)

        with patch(
            "sourcefs.collections.service.get_head_branch", return_value="main"
        ), patch("sourcefs.collections.service.get_head_commit", return_value="abc123"):
            collection = await service.load([name])

        resource = metadata_store.get(collection.vfs_instance_id).resources[0]
        assert resource.url == "https://github.com/sveltejs/kit"
        assert resource.branch == "main"
        assert resource.commit == "abc123"

        instructions = collection.agent_instructions
        assert "Repo URL: https://github.com/sveltejs/kit" in instructions
        assert "Repo Commit: abc123" in instructions
        assert "GitHub Blob Prefix: https://github.com/sveltejs/kit/blob/main" in instructions
        assert (
            "GitHub Citation Example: https://github.com/sveltejs/kit/blob/main/"
            "src/routes/blog/%2Bpage.server.js"
        ) in instructions

    @pytest.mark.asyncio
    async def test_npm_metadata_from_cache_file(self, config, registry, metadata_store, tmp_path):
        package_dir = tmp_path / "pkg"
        package_dir.mkdir()
        (package_dir / "README.md").write_text("# Pkg\n")
        (package_dir / ".sourcefs-npm-meta.json").write_text(
            '{"packageName": "svelte", "resolvedVersion": "5.1.0", '
            '"packageUrl": "https://www.npmjs.com/package/svelte/v/5.1.0"}'
        )
        loader = FakeLoader([make_resource("svelte-npm", package_dir, kind="npm")])
        service = make_service(config, loader, registry, metadata_store)

        collection = await service.load(["svelte-npm"])

        resource = metadata_store.get(collection.vfs_instance_id).resources[0]
        assert resource.package == "svelte"
        assert resource.version == "5.1.0"
        assert "NPM Citation Alias: npm:svelte@5.1.0" in collection.agent_instructions
        assert "Citation Rule: Cite local file paths only" in collection.agent_instructions

    def test_local_instruction_block(self, tmp_path):
        resource = make_resource("notes", tmp_path)
        resource.repo_sub_paths = ["guides"]
        resource.special_agent_instructions = "Prefer the guides."

        block = create_instruction_block(
            resource,
            VirtualResourceMetadata(name="notes", fs_name="notes", kind="local", path=str(tmp_path)),
        )

        lines = block.splitlines()
        assert lines[0] == "## Resource: notes"
        assert "Path: ./notes" in lines
        assert "Focus: ./notes/guides" in lines
        assert lines[-1] == "Notes: Prefer the guides."
        assert not any(line.startswith("GitHub") for line in lines)
