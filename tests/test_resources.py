"""
Tests for sourcefs.resources.
"""

import os
import subprocess
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from sourcefs.config import SourceFSConfig
from sourcefs.errors import CommonHints, ResourceError
from sourcefs.resources import (
    GitCloneFetcher,
    GitResource,
    LocalResource,
    NpmResource,
    ResourceFetcher,
    ResourcesService,
    parse_resource_definition,
)


# =============================================================================
# Fixtures
# =============================================================================


class RecordingFetcher(ResourceFetcher):
    """Fetcher that writes a README into the destination."""

    def __init__(self):
        self.calls = []

    async def fetch(self, definition, destination, quiet):
        self.calls.append((definition, destination))
        destination.mkdir(parents=True, exist_ok=True)
        (destination / "README.md").write_text(f"# {definition.name}\n")
        return str(destination)


@pytest.fixture
def config(tmp_path):
    config = SourceFSConfig.default_local()
    config.resources_directory = str(tmp_path / "cache")
    return config


# =============================================================================
# Schema Tests
# =============================================================================


class TestResourceSchema:
    def test_parse_by_type(self):
        git = parse_resource_definition(
            {"type": "git", "name": "kit", "url": "https://github.com/sveltejs/kit"}
        )
        assert isinstance(git, GitResource)
        assert git.branch == "main"

        local = parse_resource_definition({"type": "local", "name": "notes", "path": "/tmp/notes"})
        assert isinstance(local, LocalResource)

    def test_blank_search_paths_are_dropped(self):
        resource = GitResource(name="kit", url="https://x.dev/a/b", search_paths=["docs", " ", ""])
        assert resource.search_paths == ["docs"]

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            parse_resource_definition({"type": "svn", "name": "old"})


# =============================================================================
# Resolution Tests
# =============================================================================


class TestResolveDefinition:
    def test_configured_resource_wins(self, config):
        configured = LocalResource(name="notes", path="/tmp/notes")
        config.resources = [configured]

        assert ResourcesService(config).resolve_definition("notes") is configured

    def test_anonymous_git_url(self, config):
        definition = ResourcesService(config).resolve_definition(
            "https://github.com/sveltejs/kit/tree/main/documentation"
        )

        assert isinstance(definition, GitResource)
        assert definition.name == "anonymous:https://github.com/sveltejs/kit"
        assert definition.branch == "main"

    def test_anonymous_npm_reference(self, config):
        definition = ResourcesService(config).resolve_definition("npm:@sveltejs/kit@2.5.0")

        assert isinstance(definition, NpmResource)
        assert definition.name == "anonymous:npm:@sveltejs/kit@2.5.0"
        assert definition.package == "@sveltejs/kit"
        assert definition.version == "2.5.0"

    def test_unknown_name(self, config):
        with pytest.raises(ResourceError) as exc_info:
            ResourcesService(config).resolve_definition("nope")

        assert exc_info.value.message == 'Resource "nope" not found in config'
        assert CommonHints.LIST_RESOURCES in exc_info.value.hint


# =============================================================================
# Load Tests
# =============================================================================


class TestLoad:
    @pytest.mark.asyncio
    async def test_local_resource(self, config, tmp_path):
        notes = tmp_path / "notes"
        notes.mkdir()
        config.resources = [LocalResource(name="notes", path=str(notes), special_notes="Team notes")]

        resource = await ResourcesService(config).load("notes")

        assert resource.kind == "local"
        assert resource.fs_name == "notes"
        assert resource.special_agent_instructions == "Team notes"
        assert resource.cleanup is None
        assert await resource.get_absolute_directory_path() == str(notes)

    @pytest.mark.asyncio
    async def test_missing_local_directory(self, config, tmp_path):
        config.resources = [LocalResource(name="gone", path=str(tmp_path / "gone"))]
        resource = await ResourcesService(config).load("gone")

        with pytest.raises(ResourceError):
            await resource.get_absolute_directory_path()

    @pytest.mark.asyncio
    async def test_configured_git_resource_is_kept(self, config):
        config.resources = [
            GitResource(name="kit", url="https://github.com/sveltejs/kit", search_paths=["documentation"])
        ]
        fetcher = RecordingFetcher()

        resource = await ResourcesService(config, fetchers={"git": fetcher}).load("kit")

        definition, destination = fetcher.calls[0]
        assert definition.name == "kit"
        assert destination.name == "kit"
        assert resource.kind == "git"
        assert resource.repo_sub_paths == ["documentation"]
        assert resource.cleanup is None

    @pytest.mark.asyncio
    async def test_anonymous_resource_is_removed_on_cleanup(self, config):
        fetcher = RecordingFetcher()
        service = ResourcesService(config, fetchers={"git": fetcher})

        resource = await service.load("https://github.com/sveltejs/kit")
        path = await resource.get_absolute_directory_path()

        assert os.path.basename(path).startswith("anonymous-")
        assert "/" not in resource.fs_name
        assert os.path.isdir(path)

        await resource.cleanup()
        assert not os.path.exists(path)

    @pytest.mark.asyncio
    async def test_npm_without_fetcher(self, config):
        with pytest.raises(ResourceError) as exc_info:
            await ResourcesService(config).load("npm:svelte")

        assert "No fetcher is configured for npm resources" in exc_info.value.message


class TestGitCloneFetcher:
    @pytest.mark.asyncio
    async def test_clone_failure_becomes_resource_error(self, tmp_path):
        definition = GitResource(name="kit", url="https://github.com/sveltejs/kit", branch="nope")
        error = subprocess.CalledProcessError(
            128, ["git", "clone"], stderr="fatal: Remote branch nope not found"
        )

        with patch("sourcefs.resources.service.run_git", side_effect=error):
            with pytest.raises(ResourceError) as exc_info:
                await GitCloneFetcher().fetch(definition, tmp_path / "kit", quiet=True)

        assert exc_info.value.hint == CommonHints.CHECK_BRANCH
        assert "Remote branch nope not found" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_clone_arguments(self, tmp_path):
        definition = GitResource(name="kit", url="https://github.com/sveltejs/kit", branch="main")

        with patch("sourcefs.resources.service.run_git") as run_git:
            path = await GitCloneFetcher().fetch(definition, tmp_path / "kit", quiet=True)

        assert path == str(tmp_path / "kit")
        run_git.assert_called_once_with(
            "clone",
            "--depth",
            "1",
            "--branch",
            "main",
            "--quiet",
            "https://github.com/sveltejs/kit",
            str(tmp_path / "kit"),
        )
