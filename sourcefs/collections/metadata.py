"""
Registry of metadata for loaded virtual collections.
"""

from __future__ import annotations

from sourcefs.types import VirtualCollectionMetadata


class CollectionMetadataStore:
    """Maps a VFS instance id to the metadata of the collection loaded into it."""

    def __init__(self):
        self._entries: dict[str, VirtualCollectionMetadata] = {}

    def set(self, metadata: VirtualCollectionMetadata) -> None:
        self._entries[metadata.vfs_instance_id] = metadata

    def get(self, vfs_instance_id: str) -> VirtualCollectionMetadata | None:
        return self._entries.get(vfs_instance_id)

    def clear(self, vfs_instance_id: str) -> None:
        self._entries.pop(vfs_instance_id, None)

    def clear_all(self) -> None:
        self._entries.clear()

    def find_by_key(self, collection_key: str) -> list[VirtualCollectionMetadata]:
        """Return every loaded collection built from the given resource set."""
        return [entry for entry in self._entries.values() if entry.collection_key == collection_key]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, vfs_instance_id: object) -> bool:
        return vfs_instance_id in self._entries
