"""
Configuration management for SourceFS.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

if TYPE_CHECKING:
    from sourcefs.resources.schema import ResourceDefinition

# Default paths
DEFAULT_SOURCEFS_HOME = Path.home() / ".sourcefs"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass
class ToolsConfig:
    """Limits applied by the read/grep/glob/list tools."""

    max_read_lines: int = 2000
    max_read_bytes: int = 50 * 1024
    max_line_length: int = 2000
    grep_max_results: int = 100
    grep_max_line_length: int = 200
    glob_max_results: int = 100
    # Prefix for tool names in the OpenAI function-calling format
    tool_prefix: str = "sourcefs"


@dataclass
class AgentConfig:
    """Configuration for the question-answering agent."""

    provider: str = "openai"
    model: str = "gpt-5-mini"
    # One step is one model turn, which may include several tool calls
    max_steps: int = 40
    temperature: float | None = None


@dataclass
class PricingConfig:
    """Configuration for the token pricing lookup."""

    enabled: bool = True
    url: str = "https://models.dev/api.json"
    ttl_seconds: int = 3600
    timeout_ms: int = 250


@dataclass
class CollectionConfig:
    """Configuration for collection assembly."""

    ignored_directories: tuple[str, ...] = (".git",)
    root_path: str = "/"


@dataclass
class SourceFSConfig:
    """Main configuration for SourceFS."""

    tools: ToolsConfig = field(default_factory=ToolsConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    collection: CollectionConfig = field(default_factory=CollectionConfig)

    # Configured resources, addressable by name
    resources: list[ResourceDefinition] = field(default_factory=list)
    # Where fetched resources are materialized on disk
    resources_directory: str | None = None

    # Debug mode - enables verbose logging for diagnosing issues
    debug: bool = False
    # Quiet mode - suppresses structured event logs
    quiet: bool = False

    def get_resources_directory(self) -> Path:
        """Get the resources directory, using default if not set."""
        if self.resources_directory:
            return Path(self.resources_directory)
        return DEFAULT_SOURCEFS_HOME / "resources"

    def get_resource(self, name: str) -> ResourceDefinition | None:
        """Return the configured resource called ``name``, if any."""
        for resource in self.resources:
            if resource.name == name:
                return resource
        return None

    @classmethod
    def from_env(cls) -> "SourceFSConfig":
        """Create configuration from environment variables (and a .env file)."""
        load_dotenv()
        config = cls()

        config.agent.provider = os.getenv("SOURCEFS_PROVIDER", config.agent.provider)
        config.agent.model = os.getenv("SOURCEFS_MODEL", config.agent.model)
        max_steps = os.getenv("SOURCEFS_MAX_STEPS")
        if max_steps:
            config.agent.max_steps = int(max_steps)

        config.resources_directory = os.getenv("SOURCEFS_RESOURCES_DIR")
        config.debug = _env_flag("SOURCEFS_DEBUG")
        config.quiet = _env_flag("SOURCEFS_QUIET")

        return config

    @classmethod
    def default_local(cls) -> "SourceFSConfig":
        """Create a default local configuration for development (no pricing lookups)."""
        return cls(
            pricing=PricingConfig(enabled=False),
            quiet=True,
        )
