"""
Shared fixtures for the SourceFS test suite.
"""

import pytest

from sourcefs.metrics import Metrics
from sourcefs.tools.base import ToolContext
from sourcefs.virtual_fs import VfsRegistry


@pytest.fixture(autouse=True)
def quiet_metrics():
    """Silence structured logging during tests."""
    previous = Metrics.is_quiet()
    Metrics.set_quiet(True)
    yield
    Metrics.set_quiet(previous)


@pytest.fixture
def registry():
    return VfsRegistry()


@pytest.fixture
def vfs_id(registry):
    return registry.create()


@pytest.fixture
def vfs(registry, vfs_id):
    return registry.get(vfs_id)


@pytest.fixture
def context(registry, vfs_id, vfs):
    """Tool context rooted at /repo of a fresh VFS instance."""
    vfs.mkdir("/repo", recursive=True)
    return ToolContext(base_path="/repo", vfs_instance_id=vfs_id, registry=registry)
