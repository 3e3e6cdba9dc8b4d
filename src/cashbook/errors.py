"""Exception hierarchy for Cashbook services and storage transports."""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Service errors (surfaced to callers / HTTP shim)
# ---------------------------------------------------------------------------


class CashbookError(Exception):
    """Base exception for service-level failures."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(CashbookError):
    """400: malformed input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class Unauthorized(CashbookError):
    """401: bad credentials or session token."""

    status_code = 401
    code = "UNAUTHORIZED"


class NotFound(CashbookError):
    """404: missing user or backup."""

    status_code = 404
    code = "NOT_FOUND"


class Conflict(CashbookError):
    """409: duplicate email."""

    status_code = 409
    code = "CONFLICT"


class Unavailable(CashbookError):
    """503: storage transport unreachable or quota-exhausted."""

    status_code = 503
    code = "STORAGE_UNAVAILABLE"


class Internal(CashbookError):
    """500: anything unanticipated."""


# ---------------------------------------------------------------------------
# Transport errors (raised by FileStore implementations)
# ---------------------------------------------------------------------------


class FileStoreError(Exception):
    """Base exception for file-store transport operations."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ItemNotFoundError(FileStoreError):
    """The store explicitly reported that the item does not exist."""


class StoreUnavailableError(FileStoreError):
    """Network, timeout, quota or 5xx failure (retryable by the caller)."""


class CredentialError(StoreUnavailableError):
    """The OAuth refresh token was rejected; operator action is required."""


class ContainerConfigError(Exception):
    """The configured container id no longer resolves to an accessible folder."""
