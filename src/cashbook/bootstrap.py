"""Explicit construction of the storage stack and services from config."""

from __future__ import annotations

from dataclasses import dataclass

from cashbook.auth import AuthService
from cashbook.config import CashbookConfig
from cashbook.container import ContainerResolver
from cashbook.credentials import GoogleOAuthCredentials
from cashbook.file_store import FileStore
from cashbook.ledger_sync import LedgerSyncService
from cashbook.records import RecordStore
from cashbook.stores import GoogleDriveStore, MemoryFileStore
from cashbook.tokens import TokenSigner


@dataclass
class Services:
    """Everything a transport layer needs, wired to one RecordStore."""

    store: FileStore
    records: RecordStore
    auth: AuthService
    ledger: LedgerSyncService

    async def connect(self) -> str:
        return await self.records.connect()

    async def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()


def build_file_store(config: CashbookConfig) -> FileStore:
    if config.storage_backend == "drive":
        credentials = GoogleOAuthCredentials(
            client_id=config.google_client_id or "",
            client_secret=config.google_client_secret or "",
            refresh_token=config.google_refresh_token or "",
        )
        return GoogleDriveStore(credentials, timeout=config.storage_timeout_secs)
    return MemoryFileStore()


def build_services(
    config: CashbookConfig, store: FileStore | None = None
) -> Services:
    """Wire store -> resolver -> RecordStore -> services. Does not connect."""
    config.validate()
    if store is None:
        store = build_file_store(config)
    resolver = ContainerResolver(
        store,
        config.drive_folder_id,
        allow_recreate=config.allow_container_recreate,
    )
    records = RecordStore(store, resolver)
    signer = TokenSigner(config.jwt_secret or "", ttl_secs=config.token_ttl_secs)
    return Services(
        store=store,
        records=records,
        auth=AuthService(records, signer, bcrypt_rounds=config.bcrypt_rounds),
        ledger=LedgerSyncService(records),
    )
