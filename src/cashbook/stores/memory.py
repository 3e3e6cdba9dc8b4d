"""In-memory FileStore for development and tests."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime, timezone

from cashbook.errors import ItemNotFoundError
from cashbook.file_store import StoredItem


@dataclass
class _Entry:
    item: StoredItem
    parent_id: str
    content: bytes


class MemoryFileStore:
    """Dict-backed FileStore. Not persistent; one instance per process.

    ``_containers`` maps container id to name; ``_entries`` maps item id
    to its metadata, parent container and raw content.
    """

    def __init__(self) -> None:
        self._containers: dict[str, str] = {}
        self._entries: dict[str, _Entry] = {}
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    @property
    def item_count(self) -> int:
        """Number of items across all containers."""
        return len(self._entries)

    async def create_container(self, name: str) -> str:
        container_id = self._next_id("folder")
        self._containers[container_id] = name
        return container_id

    async def find_containers(self, name: str) -> list[StoredItem]:
        return [
            StoredItem(id=cid, name=cname, is_container=True)
            for cid, cname in self._containers.items()
            if cname == name
        ]

    async def list_items(
        self,
        container_id: str,
        *,
        name: str | None = None,
        name_contains: str | None = None,
    ) -> list[StoredItem]:
        if container_id not in self._containers:
            raise ItemNotFoundError(f"Container {container_id} not found.", status_code=404)
        items = []
        for entry in self._entries.values():
            if entry.parent_id != container_id:
                continue
            if name is not None and entry.item.name != name:
                continue
            if name_contains is not None and name_contains not in entry.item.name:
                continue
            items.append(entry.item)
        return items

    async def create_item(
        self, container_id: str, name: str, content: bytes
    ) -> StoredItem:
        if container_id not in self._containers:
            raise ItemNotFoundError(f"Container {container_id} not found.", status_code=404)
        item = StoredItem(
            id=self._next_id("file"),
            name=name,
            created_at=datetime.now(timezone.utc).isoformat(),
            size=len(content),
        )
        self._entries[item.id] = _Entry(item=item, parent_id=container_id, content=content)
        return item

    def _entry(self, item_id: str) -> _Entry:
        entry = self._entries.get(item_id)
        if entry is None:
            raise ItemNotFoundError(f"Item {item_id} not found.", status_code=404)
        return entry

    async def get_item_content(self, item_id: str) -> bytes:
        return self._entry(item_id).content

    async def update_item_content(self, item_id: str, content: bytes) -> None:
        entry = self._entry(item_id)
        entry.content = content
        entry.item = StoredItem(
            id=entry.item.id,
            name=entry.item.name,
            created_at=entry.item.created_at,
            size=len(content),
        )

    async def delete_item(self, item_id: str) -> None:
        self._entry(item_id)
        del self._entries[item_id]

    async def get_item_metadata(self, item_id: str) -> StoredItem:
        if item_id in self._containers:
            return StoredItem(id=item_id, name=self._containers[item_id], is_container=True)
        return self._entry(item_id).item
