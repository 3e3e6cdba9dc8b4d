"""Constants for Cashbook record naming, hashing and session tokens."""

from enum import Enum


CONTAINER_NAME = "Ledger-Cashbook-Data"
RECORD_SUFFIX = ".json"
JSON_MIME_TYPE = "application/json"

BCRYPT_ROUNDS = 12
DEFAULT_TOKEN_TTL_SECS = 7 * 24 * 60 * 60  # 7 days
JWT_ALGORITHM = "HS256"

# Fields only present on backup records; stripped on restore.
BACKUP_ONLY_FIELDS = ("backupCreatedAt", "originalUserId")


class RecordKind(str, Enum):
    """Record kinds and the item-name prefix each one is stored under."""

    USER = "user_"
    LEDGER = "ledger_"
    BACKUP = "backup_"

    @property
    def prefix(self) -> str:
        return self.value

    def item_name(self, natural_key: str) -> str:
        return f"{self.value}{natural_key}{RECORD_SUFFIX}"
