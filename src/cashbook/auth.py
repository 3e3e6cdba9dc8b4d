"""AuthService: register, login, verify, profile and password confirmation.

Stateless across calls; every piece of state lives in the RecordStore.
Emails are unique only by a scan-time check (check-then-create), so two
concurrent registrations with the same email can both succeed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import bcrypt

from cashbook.constants import BCRYPT_ROUNDS, RecordKind
from cashbook.errors import CashbookError, Conflict, NotFound, Unauthorized, ValidationError
from cashbook.models import Identity, User

if TYPE_CHECKING:
    from cashbook.records import RecordStore
    from cashbook.tokens import TokenSigner

logger = logging.getLogger(__name__)

_INVALID_LOGIN = "Invalid email or password"

# bcrypt only looks at the first 72 bytes; longer secrets are rejected.
_BCRYPT_MAX_BYTES = 72


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    secret = password.encode("utf-8")
    if len(secret) > _BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be at most {_BCRYPT_MAX_BYTES} bytes long")
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, stored_hash: str) -> bool:
    if not stored_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored_hash.encode("ascii"))
    except ValueError:
        # Malformed hash or over-long password
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# AuthService
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str

    def to_dict(self) -> dict[str, Any]:
        return {"user": self.user.public_dict(), "token": self.token}


class AuthService:
    """Registers and authenticates users against the RecordStore."""

    def __init__(
        self,
        records: RecordStore,
        signer: TokenSigner,
        *,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        self._records = records
        self._signer = signer
        self._bcrypt_rounds = bcrypt_rounds

    async def _find_by_email(self, email: str) -> User | None:
        record = await self._records.find_by_field(RecordKind.USER, "email", email)
        return User.from_dict(record.data) if record else None

    async def _get_user(self, user_id: str) -> User | None:
        record = await self._records.find_by_natural_key(RecordKind.USER, user_id)
        return User.from_dict(record.data) if record else None

    async def register(self, email: str, password: str, name: str) -> AuthResult:
        """Create a user and issue a session token. Raises Conflict on duplicate email."""
        email = normalize_email(email)
        if await self._find_by_email(email) is not None:
            raise Conflict("User with this email already exists")

        password_hash = await asyncio.to_thread(
            hash_password, password, self._bcrypt_rounds
        )
        now = _now()
        user = User(
            id=str(uuid.uuid4()),
            email=email,
            password_hash=password_hash,
            name=name.strip(),
            created_at=now,
            last_login=now,
        )
        await self._records.create_record(RecordKind.USER, user.id, user.to_dict())
        logger.info("Registered user %s.", user.id)
        return AuthResult(user=user, token=self._signer.sign(Identity.from_user(user)))

    async def login(self, email: str, password: str) -> AuthResult:
        """Authenticate and issue a fresh token.

        Unknown email and wrong password fail with the same message. The
        ``lastLogin`` update is best effort and never fails the login.
        """
        user = await self._find_by_email(normalize_email(email))
        if user is None:
            raise Unauthorized(_INVALID_LOGIN)
        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            raise Unauthorized(_INVALID_LOGIN)

        user.last_login = _now()
        try:
            await self._touch_last_login(user)
        except CashbookError as e:
            logger.warning("Failed to update last login for %s: %s", user.id, e)

        return AuthResult(user=user, token=self._signer.sign(Identity.from_user(user)))

    async def _touch_last_login(self, user: User) -> None:
        record = await self._records.find_by_natural_key(RecordKind.USER, user.id)
        if record is None:
            raise NotFound("User not found")
        data = {**record.data, "lastLogin": user.last_login}
        if "passwordHash" not in data and "password" in data:
            data["passwordHash"] = data.pop("password")
        await self._records.update_record(record, data)

    def verify(self, token: str) -> Identity:
        """Validate a session token without touching storage."""
        return self._signer.verify(token)

    async def get_profile(self, user_id: str) -> User:
        user = await self._get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def confirm_password(self, user_id: str, password: str) -> User:
        """Re-check a logged-in user's password before a destructive action."""
        user = await self._get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            raise Unauthorized("Invalid password")
        return user
