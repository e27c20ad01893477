"""Resource definitions and loading."""

from sourcefs.resources.schema import (
    GitResource,
    LocalResource,
    NpmResource,
    ResourceDefinition,
    parse_resource_definition,
)
from sourcefs.resources.service import (
    GitCloneFetcher,
    ResourceFetcher,
    ResourcesService,
    create_anonymous_resource,
)

__all__ = [
    "ResourceDefinition",
    "GitResource",
    "NpmResource",
    "LocalResource",
    "parse_resource_definition",
    "ResourcesService",
    "ResourceFetcher",
    "GitCloneFetcher",
    "create_anonymous_resource",
]
