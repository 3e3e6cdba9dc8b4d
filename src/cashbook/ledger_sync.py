"""LedgerSyncService: one user's current snapshot and its backups."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from cashbook.constants import BACKUP_ONLY_FIELDS, RecordKind
from cashbook.errors import NotFound, ValidationError
from cashbook.models import BackupInfo, LedgerSnapshot

if TYPE_CHECKING:
    from cashbook.records import DeleteReport, RecordStore

logger = logging.getLogger(__name__)

_TRANSACTION_TYPES = frozenset({"income", "expense"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _check_entries(
    entries: Sequence[Any], label: str, required: str
) -> list[dict[str, Any]]:
    checked = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ValidationError(f"{label}[{index}] must be an object")
        if not entry.get(required):
            raise ValidationError(f"{label}[{index}] is missing {required}")
        checked.append(dict(entry))
    return checked


class LedgerSyncService:
    """Reads and writes ledger snapshots and manages user-scoped backups.

    ``clock`` supplies the timestamps used for ``lastModified`` and
    backup names.
    """

    def __init__(
        self,
        records: RecordStore,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._records = records
        self._clock = clock

    async def get_snapshot(self, user_id: str) -> LedgerSnapshot:
        """Return the stored snapshot, or an empty one for first-time users."""
        record = await self._records.find_by_natural_key(RecordKind.LEDGER, user_id)
        if record is None:
            return LedgerSnapshot(last_modified=self._clock().isoformat())
        return LedgerSnapshot.from_dict(record.data)

    async def save_snapshot(
        self,
        user_id: str,
        books: Any,
        transactions: Any,
        selected_book_id: Any = None,
    ) -> LedgerSnapshot:
        """Validate and overwrite the user's snapshot.

        Transactions pointing at a book that is no longer in ``books``
        are dropped, and a ``selected_book_id`` naming a missing book is
        cleared.
        """
        if not _is_sequence(books):
            raise ValidationError("Books must be an array")
        if not _is_sequence(transactions):
            raise ValidationError("Transactions must be an array")
        if selected_book_id is not None and not isinstance(selected_book_id, str):
            raise ValidationError("Selected book ID must be a string")

        book_list = _check_entries(books, "books", "id")
        tx_list = _check_entries(transactions, "transactions", "bookId")
        for index, tx in enumerate(tx_list):
            if "type" in tx and tx["type"] not in _TRANSACTION_TYPES:
                raise ValidationError(
                    f"transactions[{index}].type must be 'income' or 'expense'"
                )

        book_ids = {b["id"] for b in book_list}
        kept = [tx for tx in tx_list if tx["bookId"] in book_ids]
        if len(kept) != len(tx_list):
            logger.info(
                "Dropped %d orphaned transaction(s) for %s.",
                len(tx_list) - len(kept), user_id,
            )
        if selected_book_id is not None and selected_book_id not in book_ids:
            selected_book_id = None

        return await self._write_snapshot(user_id, book_list, kept, selected_book_id)

    async def _write_snapshot(
        self,
        user_id: str,
        books: list[Any],
        transactions: list[Any],
        selected_book_id: Any,
    ) -> LedgerSnapshot:
        snapshot = LedgerSnapshot(
            books=books,
            transactions=transactions,
            selected_book_id=selected_book_id,
            last_modified=self._clock().isoformat(),
            user_id=user_id,
        )
        await self._records.upsert(RecordKind.LEDGER, user_id, snapshot.to_dict())
        return snapshot

    # -- backups -------------------------------------------------------------

    async def create_backup(self, user_id: str) -> BackupInfo:
        """Freeze the current snapshot into a new timestamped backup."""
        record = await self._records.find_by_natural_key(RecordKind.LEDGER, user_id)
        if record is None:
            raise NotFound("No ledger data found to backup")

        now = self._clock()
        stamp = now.isoformat().replace(":", "-").replace(".", "-")
        payload = {
            **record.data,
            "backupCreatedAt": now.isoformat(),
            "originalUserId": user_id,
        }
        backup = await self._records.create_record(
            RecordKind.BACKUP, f"{user_id}_{stamp}", payload
        )
        logger.info("Created backup %s for %s.", backup.name, user_id)
        return BackupInfo(
            id=backup.id,
            name=backup.name,
            created_at=backup.item.created_at or now.isoformat(),
            size=backup.item.size,
        )

    async def list_backups(self, user_id: str) -> list[BackupInfo]:
        items = await self._records.list_records(RecordKind.BACKUP, f"{user_id}_")
        return [BackupInfo.from_item(item) for item in items]

    async def restore_backup(self, user_id: str, backup_id: str) -> LedgerSnapshot:
        """Overwrite the current snapshot with a backup owned by ``user_id``.

        The backup is written back as it was taken; entries are not
        re-validated, so backups from older clients still restore.
        """
        record = await self._records.get_by_id(backup_id)
        owned = (
            record is not None
            and record.name.startswith(f"{RecordKind.BACKUP.prefix}{user_id}_")
            and record.data.get("originalUserId") == user_id
        )
        if not owned:
            raise NotFound("Backup not found")

        data = {k: v for k, v in record.data.items() if k not in BACKUP_ONLY_FIELDS}
        restored = LedgerSnapshot.from_dict(data)
        logger.info("Restoring backup %s for %s.", record.name, user_id)
        return await self._write_snapshot(
            user_id,
            restored.books,
            restored.transactions,
            restored.selected_book_id,
        )

    async def delete_all_user_data(self, user_id: str) -> DeleteReport:
        """Delete every record whose name carries ``user_id``. Irreversible.

        Callers must re-verify the user's password first.
        """
        if not user_id:
            raise ValidationError("User id is required")
        report = await self._records.delete_all_matching(user_id)
        if not report.complete:
            logger.warning(
                "Account deletion for %s left %d item(s) behind.",
                user_id, len(report.failed),
            )
        return report
