"""Cashbook: a personal ledger backend that keeps its records in Google Drive.

Users, ledger snapshots and backups are JSON files inside one Drive
folder; RecordStore layers lookup, upsert and cascading delete on top.
"""

__version__ = "0.1.0"

from cashbook.errors import (
    CashbookError,
    Conflict,
    Internal,
    NotFound,
    Unauthorized,
    Unavailable,
    ValidationError,
)
from cashbook.config import CashbookConfig, ConfigError, load_config
from cashbook.constants import RecordKind
from cashbook.file_store import FileStore, StoredItem
from cashbook.container import ContainerResolver
from cashbook.records import DeleteReport, Record, RecordStore
from cashbook.models import BackupInfo, Identity, LedgerSnapshot, User
from cashbook.tokens import TokenSigner
from cashbook.auth import AuthService
from cashbook.ledger_sync import LedgerSyncService
from cashbook.stores import GoogleDriveStore, MemoryFileStore

__all__ = [
    "CashbookError",
    "Conflict",
    "Internal",
    "NotFound",
    "Unauthorized",
    "Unavailable",
    "ValidationError",
    "CashbookConfig",
    "ConfigError",
    "load_config",
    "RecordKind",
    "FileStore",
    "StoredItem",
    "ContainerResolver",
    "DeleteReport",
    "Record",
    "RecordStore",
    "BackupInfo",
    "Identity",
    "LedgerSnapshot",
    "User",
    "TokenSigner",
    "AuthService",
    "LedgerSyncService",
    "GoogleDriveStore",
    "MemoryFileStore",
]
