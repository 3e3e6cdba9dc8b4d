"""FastAPI shim: validates requests, calls the services, maps errors to JSON.

Holds no ledger or auth logic of its own. Services are built in the
lifespan handler and the RecordStore is connected before the first
request is accepted.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cashbook import __version__
from cashbook.bootstrap import Services, build_services
from cashbook.config import CashbookConfig, load_config
from cashbook.errors import CashbookError, Unauthorized, ValidationError
from cashbook.models import Identity
from cashbook.schemas import DeleteAccountRequest, LedgerPayload, LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)


def _ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def _error(status_code: int, message: str, code: str, details: list | None = None) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "message": message, "error": code}
    if details:
        body["errors"] = details
    return JSONResponse(status_code=status_code, content=body)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_services(request: Request) -> Services:
    return request.app.state.services


def current_identity(
    authorization: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
) -> Identity:
    if not authorization:
        raise Unauthorized("Access token required")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise Unauthorized("Access token required")
    return services.auth.verify(parts[1].strip())


# ---------------------------------------------------------------------------
# /api/auth
# ---------------------------------------------------------------------------

auth_router = APIRouter(prefix="/api/auth")


@auth_router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest, services: Services = Depends(get_services)
) -> dict[str, Any]:
    result = await services.auth.register(payload.email, payload.password, payload.name)
    return _ok(result.to_dict(), "User registered successfully")


@auth_router.post("/login")
async def login(
    payload: LoginRequest, services: Services = Depends(get_services)
) -> dict[str, Any]:
    result = await services.auth.login(payload.email, payload.password)
    return _ok(result.to_dict(), "Login successful")


@auth_router.get("/verify")
async def verify(identity: Identity = Depends(current_identity)) -> dict[str, Any]:
    return _ok({"user": identity.public_dict()}, "Token is valid")


@auth_router.get("/profile")
async def profile(
    identity: Identity = Depends(current_identity),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    user = await services.auth.get_profile(identity.user_id)
    return _ok({"user": user.public_dict()})


# ---------------------------------------------------------------------------
# /api/user-data
# ---------------------------------------------------------------------------

data_router = APIRouter(prefix="/api/user-data")


@data_router.get("/ledger")
async def get_ledger(
    identity: Identity = Depends(current_identity),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    snapshot = await services.ledger.get_snapshot(identity.user_id)
    return _ok(snapshot.to_dict())


@data_router.post("/ledger")
async def save_ledger(
    payload: LedgerPayload,
    identity: Identity = Depends(current_identity),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    snapshot = await services.ledger.save_snapshot(
        identity.user_id, payload.books, payload.transactions, payload.selectedBookId
    )
    return _ok(snapshot.to_dict(), "Ledger data saved successfully")


@data_router.post("/backup")
async def create_backup(
    identity: Identity = Depends(current_identity),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    backup = await services.ledger.create_backup(identity.user_id)
    return _ok(
        {"backupId": backup.id, "name": backup.name, "createdAt": backup.created_at},
        "Backup created successfully",
    )


@data_router.get("/backups")
async def list_backups(
    identity: Identity = Depends(current_identity),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    backups = await services.ledger.list_backups(identity.user_id)
    return _ok({"backups": [b.to_dict() for b in backups]})


@data_router.post("/restore/{backup_id}")
async def restore_backup(
    backup_id: str,
    identity: Identity = Depends(current_identity),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    snapshot = await services.ledger.restore_backup(identity.user_id, backup_id)
    return _ok(snapshot.to_dict(), "Data restored successfully from backup")


@data_router.delete("/account")
async def delete_account(
    payload: Optional[DeleteAccountRequest] = None,
    identity: Identity = Depends(current_identity),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    if payload is None or not payload.password:
        raise ValidationError("Password confirmation required for account deletion")
    await services.auth.confirm_password(identity.user_id, payload.password)
    report = await services.ledger.delete_all_user_data(identity.user_id)
    if report.complete:
        message = "Account and all data deleted successfully"
    else:
        message = "Account deleted, but some data could not be removed"
    return _ok(report.to_dict(), message)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    config: CashbookConfig | None = None,
    *,
    services: Services | None = None,
) -> FastAPI:
    """Build the FastAPI app. Pass ``services`` to inject a prebuilt stack."""
    if config is None:
        config = load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        built = services or build_services(config)
        container_id = await built.connect()
        logger.info("Storage connected (container %s).", container_id)
        app.state.services = built
        try:
            yield
        finally:
            await built.close()

    app = FastAPI(title="Cashbook API", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CashbookError)
    async def cashbook_error_handler(request: Request, exc: CashbookError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return _error(exc.status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = []
        for err in exc.errors():
            loc = ".".join(str(item) for item in err.get("loc", []) if item != "body")
            details.append({"field": loc or "body", "message": err.get("msg", "validation error")})
        return _error(400, "Validation failed", ValidationError.code, details)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error", "INTERNAL_ERROR")

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "OK",
            "message": "Ledger Cashbook API is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "storage": config.storage_backend,
        }

    app.include_router(auth_router)
    app.include_router(data_router)
    return app
