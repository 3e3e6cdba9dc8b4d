"""Abstract transport interface for the flat file store behind RecordStore.

Defines the FileStore Protocol that RecordStore and ContainerResolver
depend on. Concrete implementations (Google Drive, in-memory) live in
``cashbook.stores``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class StoredItem:
    """Metadata for one item inside a container."""

    id: str
    name: str
    created_at: str = ""  # ISO datetime, as reported by the store
    size: int | None = None
    is_container: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "size": self.size,
        }


@runtime_checkable
class FileStore(Protocol):
    """Async flat file store: named items inside a single-level container.

    Any object implementing these methods can back RecordStore. Absence
    is reported with ``ItemNotFoundError``; every other failure with
    ``StoreUnavailableError``.
    """

    async def create_container(self, name: str) -> str: ...

    async def find_containers(self, name: str) -> list[StoredItem]: ...

    async def list_items(
        self,
        container_id: str,
        *,
        name: str | None = None,
        name_contains: str | None = None,
    ) -> list[StoredItem]: ...

    async def create_item(
        self, container_id: str, name: str, content: bytes
    ) -> StoredItem: ...

    async def get_item_content(self, item_id: str) -> bytes | str: ...

    async def update_item_content(self, item_id: str, content: bytes) -> None: ...

    async def delete_item(self, item_id: str) -> None: ...

    async def get_item_metadata(self, item_id: str) -> StoredItem: ...
