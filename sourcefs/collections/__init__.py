"""Assembly of resources into virtual collections."""

from sourcefs.collections.metadata import CollectionMetadataStore
from sourcefs.collections.service import CollectionsService, ResourceLoader, get_collection_key

__all__ = ["CollectionMetadataStore", "CollectionsService", "ResourceLoader", "get_collection_key"]
