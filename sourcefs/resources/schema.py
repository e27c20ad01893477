"""
Resource definitions consumed by SourceFS.

A resource is a named knowledge source that can be materialized into a
directory tree: a git repository, an npm package, or a local directory.
Definitions are owned by configuration; the core only reads them.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class _ResourceBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Unique resource name")
    special_notes: Optional[str] = Field(
        default=None,
        description="Free-text notes passed to the agent with this resource",
    )


class GitResource(_ResourceBase):
    """A git repository resource."""

    type: Literal["git"] = "git"
    url: str = Field(min_length=1)
    branch: str = Field(default="main", min_length=1)
    search_paths: list[str] = Field(
        default_factory=list,
        description="Sub-paths of the repository the agent should focus on",
    )

    @field_validator("search_paths")
    @classmethod
    def _drop_blank_paths(cls, value: list[str]) -> list[str]:
        return [path for path in value if path.strip()]


class NpmResource(_ResourceBase):
    """An npm package resource."""

    type: Literal["npm"] = "npm"
    package: str = Field(min_length=1)
    version: Optional[str] = None


class LocalResource(_ResourceBase):
    """A directory on the local disk."""

    type: Literal["local"] = "local"
    path: str = Field(min_length=1)


ResourceDefinition = Annotated[
    Union[GitResource, NpmResource, LocalResource],
    Field(discriminator="type"),
]

_definition_adapter: TypeAdapter = TypeAdapter(ResourceDefinition)


def parse_resource_definition(data: dict) -> GitResource | NpmResource | LocalResource:
    """Validate a raw mapping into the matching resource definition."""
    return _definition_adapter.validate_python(data)

