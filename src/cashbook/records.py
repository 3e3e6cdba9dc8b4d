"""RecordStore: database-like record semantics over a flat FileStore.

Every record is one JSON item inside the deployment's container, named
``{kind prefix}{natural key}.json``. There is no index: ``find_by_field``
fetches and decodes every item of a kind (O(n) round trips), while
natural-key lookups are a single exact-name list call. To scale, swap
the FileStore for a real key-value or document store behind the same
interface rather than changing this API.

No locking, no transactions, no versioning: concurrent writers to the
same record race and the last write wins.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cashbook.constants import RecordKind
from cashbook.errors import (
    ContainerConfigError,
    FileStoreError,
    Internal,
    ItemNotFoundError,
    StoreUnavailableError,
    Unavailable,
)

if TYPE_CHECKING:
    from cashbook.container import ContainerResolver
    from cashbook.file_store import FileStore, StoredItem

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def encode_payload(payload: Mapping[str, Any]) -> bytes:
    """Serialize a record payload as pretty-printed UTF-8 JSON."""
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")


def decode_content(raw: bytes | str | Mapping[str, Any]) -> dict[str, Any]:
    """Parse item content into a dict.

    Transports may hand back raw bytes, text, or an already-decoded
    mapping; all three are accepted. Raises ValueError on anything that
    is not a JSON object.
    """
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


# ---------------------------------------------------------------------------
# Record / DeleteReport
# ---------------------------------------------------------------------------


@dataclass
class Record:
    """A decoded record plus the metadata of the item backing it."""

    item: StoredItem
    data: dict[str, Any]

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def name(self) -> str:
        return self.item.name


@dataclass
class DeleteReport:
    """Outcome of a best-effort bulk delete."""

    attempted: int = 0
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempted": self.attempted,
            "deleted": len(self.deleted),
            "failed": len(self.failed),
        }


@contextmanager
def _storage_errors() -> Iterator[None]:
    """Translate transport failures into service errors."""
    try:
        yield
    except (StoreUnavailableError, ContainerConfigError) as exc:
        raise Unavailable(f"Storage service unavailable: {exc}") from exc
    except ItemNotFoundError as exc:
        raise Unavailable(f"Storage container is not accessible: {exc}") from exc
    except FileStoreError as exc:
        raise Internal(f"Storage request rejected: {exc}") from exc


# ---------------------------------------------------------------------------
# RecordStore
# ---------------------------------------------------------------------------


class RecordStore:
    """Create/find/update/delete records of each ``RecordKind``.

    Construct explicitly and ``await connect()`` before serving requests;
    operations issued before that connect lazily.
    """

    def __init__(self, store: FileStore, resolver: ContainerResolver) -> None:
        self._store = store
        self._resolver = resolver

    async def connect(self) -> str:
        """Resolve the container. Raises ContainerConfigError / StoreUnavailableError."""
        return await self._resolver.ensure_container()

    async def _container(self) -> str:
        return await self._resolver.ensure_container()

    async def _read(self, item: StoredItem) -> Record:
        raw = await self._store.get_item_content(item.id)
        return Record(item=item, data=decode_content(raw))

    # -- create / read -------------------------------------------------------

    async def create_record(
        self, kind: RecordKind, natural_key: str, payload: Mapping[str, Any]
    ) -> Record:
        """Write a new item. No existence check is made."""
        with _storage_errors():
            container_id = await self._container()
            item = await self._store.create_item(
                container_id, kind.item_name(natural_key), encode_payload(payload)
            )
        return Record(item=item, data=dict(payload))

    async def find_by_field(
        self, kind: RecordKind, field_name: str, value: Any
    ) -> Record | None:
        """Return the first record of ``kind`` whose ``field_name`` equals ``value``.

        Items that disappear mid-scan or fail to decode are skipped.
        """
        with _storage_errors():
            container_id = await self._container()
            items = await self._store.list_items(container_id, name_contains=kind.prefix)
            for item in items:
                if not item.name.startswith(kind.prefix):
                    continue
                try:
                    record = await self._read(item)
                except ItemNotFoundError:
                    continue
                except (ValueError, UnicodeDecodeError) as exc:
                    logger.warning("Skipping unreadable record %s: %s", item.name, exc)
                    continue
                if record.data.get(field_name) == value:
                    return record
        return None

    async def find_by_natural_key(
        self, kind: RecordKind, natural_key: str
    ) -> Record | None:
        with _storage_errors():
            container_id = await self._container()
            items = await self._store.list_items(
                container_id, name=kind.item_name(natural_key)
            )
            if not items:
                return None
            try:
                return await self._read(items[0])
            except ItemNotFoundError:
                return None
            except (ValueError, UnicodeDecodeError) as exc:
                raise Internal(f"Record {items[0].name} is corrupt: {exc}") from exc

    async def get_by_id(self, item_id: str) -> Record | None:
        """Fetch one item by store id, or None if the store reports it missing."""
        with _storage_errors():
            try:
                item = await self._store.get_item_metadata(item_id)
                return await self._read(item)
            except ItemNotFoundError:
                return None
            except (ValueError, UnicodeDecodeError) as exc:
                raise Internal(f"Record {item_id} is corrupt: {exc}") from exc

    async def list_records(
        self, kind: RecordKind, name_contains: str = ""
    ) -> list[StoredItem]:
        """List item metadata for ``kind``, newest first."""
        pattern = f"{kind.prefix}{name_contains}"
        with _storage_errors():
            container_id = await self._container()
            items = await self._store.list_items(container_id, name_contains=pattern)
        matching = [i for i in items if i.name.startswith(pattern)]
        return sorted(matching, key=lambda i: (i.created_at, i.name), reverse=True)

    # -- write ---------------------------------------------------------------

    async def update_record(self, record: Record, payload: Mapping[str, Any]) -> Record:
        """Overwrite a known record's content."""
        with _storage_errors():
            await self._store.update_item_content(record.id, encode_payload(payload))
        return Record(item=record.item, data=dict(payload))

    async def upsert(
        self, kind: RecordKind, natural_key: str, payload: Mapping[str, Any]
    ) -> Record:
        """Overwrite the item named by ``natural_key``, creating it if absent."""
        name = kind.item_name(natural_key)
        content = encode_payload(payload)
        with _storage_errors():
            container_id = await self._container()
            existing = await self._store.list_items(container_id, name=name)
            if existing:
                item = existing[0]
                await self._store.update_item_content(item.id, content)
            else:
                item = await self._store.create_item(container_id, name, content)
        return Record(item=item, data=dict(payload))

    # -- delete --------------------------------------------------------------

    async def delete_all_matching(self, substring: str) -> DeleteReport:
        """Delete every item whose name contains ``substring``.

        Deletes run concurrently and all are awaited; failures are
        reported, not rolled back or retried.
        """
        if not substring:
            raise ValueError("Refusing to delete with an empty name filter.")
        with _storage_errors():
            container_id = await self._container()
            items = await self._store.list_items(container_id, name_contains=substring)

        results = await asyncio.gather(
            *(self._store.delete_item(item.id) for item in items),
            return_exceptions=True,
        )

        report = DeleteReport(attempted=len(items))
        for item, result in zip(items, results):
            if isinstance(result, ItemNotFoundError):
                report.deleted.append(item.id)
            elif isinstance(result, BaseException):
                logger.warning("Failed to delete %s (%s): %s", item.name, item.id, result)
                report.failed.append(item.id)
            else:
                report.deleted.append(item.id)
        logger.info(
            "Deleted %d/%d items matching %r.",
            len(report.deleted), report.attempted, substring,
        )
        return report
