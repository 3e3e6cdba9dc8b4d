"""End-to-end tests for the FastAPI shim against the in-memory store."""

from unittest.mock import AsyncMock

import jwt
import pytest
from fastapi.testclient import TestClient

from cashbook.api import create_app
from cashbook.bootstrap import build_services
from cashbook.config import CashbookConfig
from cashbook.errors import StoreUnavailableError

SECRET = "api-test-secret-0123456789abcdef012345"
CONFIG = CashbookConfig(jwt_secret=SECRET, bcrypt_rounds=4)


@pytest.fixture()
def client():
    with TestClient(create_app(CONFIG)) as test_client:
        yield test_client


def _register(client: TestClient, email: str = "a@x.com", password: str = "Passw0rd") -> dict:
    res = client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "name": "Alice"},
    )
    assert res.status_code == 201
    return res.json()["data"]


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------------


def test_health(client: TestClient) -> None:
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "OK"


# ---------------------------------------------------------------------------
# /api/auth
# ---------------------------------------------------------------------------


def test_register_and_login(client: TestClient) -> None:
    data = _register(client)
    assert data["token"]
    assert "passwordHash" not in data["user"]

    res = client.post("/api/auth/login", json={"email": "a@x.com", "password": "Passw0rd"})
    assert res.status_code == 200
    token = res.json()["data"]["token"]
    claims = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert claims["email"] == "a@x.com"
    assert claims["userId"] == data["user"]["id"]


def test_register_duplicate_email(client: TestClient) -> None:
    _register(client)
    res = client.post(
        "/api/auth/register",
        json={"email": "a@x.com", "password": "Passw0rd", "name": "Again"},
    )
    assert res.status_code == 409
    assert res.json()["success"] is False


@pytest.mark.parametrize(
    "payload",
    [
        {"email": "not-an-email", "password": "Passw0rd", "name": "Alice"},
        {"email": "a@x.com", "password": "short", "name": "Alice"},
        {"email": "a@x.com", "password": "alllowercase1", "name": "Alice"},
        {"email": "a@x.com", "password": "Passw0rd", "name": " A "},
        {"email": "a@x.com", "name": "Alice"},
    ],
)
def test_register_validation(client: TestClient, payload: dict) -> None:
    res = client.post("/api/auth/register", json=payload)
    assert res.status_code == 400
    assert res.json()["error"] == "VALIDATION_ERROR"


def test_login_wrong_password(client: TestClient) -> None:
    _register(client)
    res = client.post("/api/auth/login", json={"email": "a@x.com", "password": "Wrong0pass"})
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid email or password"


def test_verify_and_profile(client: TestClient) -> None:
    data = _register(client)
    res = client.get("/api/auth/verify", headers=_auth(data["token"]))
    assert res.status_code == 200
    assert res.json()["data"]["user"]["id"] == data["user"]["id"]

    res = client.get("/api/auth/profile", headers=_auth(data["token"]))
    assert res.status_code == 200
    assert res.json()["data"]["user"]["email"] == "a@x.com"


def test_missing_or_bad_token(client: TestClient) -> None:
    assert client.get("/api/auth/verify").status_code == 401
    assert client.get("/api/auth/verify", headers=_auth("garbage")).status_code == 401
    assert client.get("/api/user-data/ledger", headers={"Authorization": "Token x"}).status_code == 401


# ---------------------------------------------------------------------------
# /api/user-data
# ---------------------------------------------------------------------------


def test_ledger_round_trip(client: TestClient) -> None:
    headers = _auth(_register(client)["token"])

    empty = client.get("/api/user-data/ledger", headers=headers).json()["data"]
    assert empty["books"] == []
    assert empty["transactions"] == []
    assert empty["selectedBookId"] is None

    body = {"books": [{"id": "b1", "name": "Main"}], "transactions": [], "selectedBookId": "b1"}
    res = client.post("/api/user-data/ledger", json=body, headers=headers)
    assert res.status_code == 200

    stored = client.get("/api/user-data/ledger", headers=headers).json()["data"]
    assert stored["books"] == body["books"]
    assert stored["selectedBookId"] == "b1"


def test_ledger_rejects_non_array(client: TestClient) -> None:
    headers = _auth(_register(client)["token"])
    res = client.post(
        "/api/user-data/ledger",
        json={"books": "nope", "transactions": []},
        headers=headers,
    )
    assert res.status_code == 400


def test_backup_list_restore(client: TestClient) -> None:
    headers = _auth(_register(client)["token"])

    assert client.post("/api/user-data/backup", headers=headers).status_code == 404

    original = {"books": [{"id": "b1", "name": "Main"}], "transactions": [], "selectedBookId": "b1"}
    client.post("/api/user-data/ledger", json=original, headers=headers)
    backup = client.post("/api/user-data/backup", headers=headers).json()["data"]
    assert backup["backupId"]
    assert backup["name"].startswith("backup_")

    changed = {"books": [{"id": "b2", "name": "Other"}], "transactions": [], "selectedBookId": "b2"}
    client.post("/api/user-data/ledger", json=changed, headers=headers)

    backups = client.get("/api/user-data/backups", headers=headers).json()["data"]["backups"]
    assert [b["id"] for b in backups] == [backup["backupId"]]

    res = client.post(f"/api/user-data/restore/{backup['backupId']}", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["books"] == original["books"]

    assert client.post("/api/user-data/restore/file-404", headers=headers).status_code == 404


def test_delete_account(client: TestClient) -> None:
    data = _register(client)
    headers = _auth(data["token"])
    client.post(
        "/api/user-data/ledger",
        json={"books": [], "transactions": [], "selectedBookId": None},
        headers=headers,
    )

    res = client.request("DELETE", "/api/user-data/account", json={}, headers=headers)
    assert res.status_code == 400

    res = client.request(
        "DELETE", "/api/user-data/account", json={"password": "Wrong0pass"}, headers=headers
    )
    assert res.status_code == 401

    res = client.request(
        "DELETE", "/api/user-data/account", json={"password": "Passw0rd"}, headers=headers
    )
    assert res.status_code == 200
    assert res.json()["data"] == {"attempted": 2, "deleted": 2, "failed": 0}

    res = client.post("/api/auth/login", json={"email": "a@x.com", "password": "Passw0rd"})
    assert res.status_code == 401

    res = client.request(
        "DELETE", "/api/user-data/account", json={"password": "Passw0rd"}, headers=headers
    )
    assert res.status_code == 404


def test_storage_outage_is_503() -> None:
    services = build_services(CONFIG)
    with TestClient(create_app(CONFIG, services=services)) as client:
        services.store.list_items = AsyncMock(side_effect=StoreUnavailableError("down"))
        res = client.post("/api/auth/login", json={"email": "a@x.com", "password": "Passw0rd"})
        assert res.status_code == 503
        assert res.json()["error"] == "STORAGE_UNAVAILABLE"
