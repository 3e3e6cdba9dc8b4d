"""Record payloads: User, LedgerSnapshot, BackupInfo, Identity.

Pure data model with no I/O. ``to_dict()`` produces the camelCase JSON
document stored in the file store; ``from_dict()`` accepts what was
stored, including documents written by older deployments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cashbook.file_store import StoredItem


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------


@dataclass
class User:
    """A registered account. ``password_hash`` never leaves the backend."""

    id: str
    email: str
    password_hash: str
    name: str
    created_at: str = ""
    last_login: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "passwordHash": self.password_hash,
            "name": self.name,
            "createdAt": self.created_at,
            "lastLogin": self.last_login,
        }

    def public_dict(self) -> dict[str, Any]:
        """Fields safe to return to clients."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "createdAt": self.created_at,
            "lastLogin": self.last_login,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(
            id=str(data.get("id", "")),
            email=str(data.get("email", "")),
            # Migration: older records stored the hash under "password"
            password_hash=str(data.get("passwordHash", data.get("password", ""))),
            name=str(data.get("name", "")),
            created_at=str(data.get("createdAt", "")),
            last_login=data.get("lastLogin"),
        )


# ---------------------------------------------------------------------------
# Identity (session token claims)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Identity:
    """Claims embedded in a session token."""

    user_id: str
    email: str
    name: str

    def to_claims(self) -> dict[str, str]:
        return {"userId": self.user_id, "email": self.email, "name": self.name}

    def public_dict(self) -> dict[str, str]:
        return {"id": self.user_id, "email": self.email, "name": self.name}

    @classmethod
    def from_user(cls, user: User) -> Identity:
        return cls(user_id=user.id, email=user.email, name=user.name)


# ---------------------------------------------------------------------------
# LedgerSnapshot
# ---------------------------------------------------------------------------


@dataclass
class LedgerSnapshot:
    """One user's complete ledger state, overwritten wholesale on save.

    Books and transactions are kept as the client sent them so fields
    this backend does not know about survive a round trip.
    """

    books: list[dict[str, Any]] = field(default_factory=list)
    transactions: list[dict[str, Any]] = field(default_factory=list)
    selected_book_id: str | None = None
    last_modified: str | None = None
    user_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "books": self.books,
            "transactions": self.transactions,
            "selectedBookId": self.selected_book_id,
            "lastModified": self.last_modified,
        }
        if self.user_id is not None:
            data["userId"] = self.user_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerSnapshot:
        return cls(
            books=list(data.get("books") or []),
            transactions=list(data.get("transactions") or []),
            selected_book_id=data.get("selectedBookId"),
            last_modified=data.get("lastModified"),
            user_id=data.get("userId"),
        )


# ---------------------------------------------------------------------------
# BackupInfo
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackupInfo:
    """Listing entry for one stored backup."""

    id: str
    name: str
    created_at: str
    size: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "size": self.size,
        }

    @classmethod
    def from_item(cls, item: StoredItem) -> BackupInfo:
        return cls(id=item.id, name=item.name, created_at=item.created_at, size=item.size)
