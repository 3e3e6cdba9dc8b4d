"""Tests for GoogleDriveStore: FileStore via the Drive v3 REST API."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from cashbook.credentials import GoogleOAuthCredentials
from cashbook.errors import FileStoreError, ItemNotFoundError, StoreUnavailableError
from cashbook.file_store import FileStore, StoredItem
from cashbook.stores.drive import GoogleDriveStore, _quote


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FOLDER_ID = "folder-1"


def _credentials() -> GoogleOAuthCredentials:
    creds = MagicMock(spec=GoogleOAuthCredentials)
    creds.access_token = AsyncMock(return_value="access-1")
    creds.close = AsyncMock()
    return creds


def _store() -> GoogleDriveStore:
    return GoogleDriveStore(_credentials())


def _response(
    status_code: int = 200,
    json_data: dict | list | None = None,
    content: bytes | None = None,
    text: str | None = None,
) -> httpx.Response:
    """Build a fake httpx.Response."""
    request = httpx.Request("GET", "https://www.googleapis.com/test")
    if content is not None:
        return httpx.Response(status_code=status_code, content=content, request=request)
    if text is not None:
        return httpx.Response(status_code=status_code, text=text, request=request)
    return httpx.Response(status_code=status_code, json=json_data, request=request)


# ---------------------------------------------------------------------------
# Query escaping
# ---------------------------------------------------------------------------


class TestQuote:
    def test_escapes_single_quotes(self) -> None:
        assert _quote("o'brien") == "o\\'brien"

    def test_escapes_backslashes(self) -> None:
        assert _quote("a\\b") == "a\\\\b"


# ---------------------------------------------------------------------------
# Request dispatch / error mapping
# ---------------------------------------------------------------------------


class TestRequest:
    @pytest.mark.asyncio
    async def test_sends_bearer_token(self) -> None:
        store = _store()
        store._client.request = AsyncMock(return_value=_response(200, {"id": "x", "name": "n"}))
        await store.get_item_metadata("x")
        _, kwargs = store._client.request.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer access-1"

    @pytest.mark.asyncio
    async def test_404_raises_item_not_found(self) -> None:
        store = _store()
        store._client.request = AsyncMock(return_value=_response(404, {"error": "nf"}))
        with pytest.raises(ItemNotFoundError):
            await store.get_item_content("missing")

    @pytest.mark.asyncio
    async def test_5xx_raises_unavailable(self) -> None:
        store = _store()
        store._client.request = AsyncMock(return_value=_response(503, {}))
        with pytest.raises(StoreUnavailableError):
            await store.delete_item("x")

    @pytest.mark.asyncio
    async def test_quota_403_raises_unavailable(self) -> None:
        store = _store()
        store._client.request = AsyncMock(
            return_value=_response(403, text='{"error": {"message": "User rate limit exceeded"}}')
        )
        with pytest.raises(StoreUnavailableError):
            await store.delete_item("x")

    @pytest.mark.asyncio
    async def test_permission_403_raises_generic_error(self) -> None:
        store = _store()
        store._client.request = AsyncMock(
            return_value=_response(403, text='{"error": {"message": "Insufficient permissions"}}')
        )
        with pytest.raises(FileStoreError) as exc_info:
            await store.delete_item("x")
        assert not isinstance(exc_info.value, StoreUnavailableError)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_timeout_raises_unavailable(self) -> None:
        store = _store()
        store._client.request = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(StoreUnavailableError, match="timed out"):
            await store.get_item_content("x")

    @pytest.mark.asyncio
    async def test_connect_error_raises_unavailable(self) -> None:
        store = _store()
        store._client.request = AsyncMock(side_effect=httpx.ConnectError("down"))
        with pytest.raises(StoreUnavailableError):
            await store.get_item_content("x")

    @pytest.mark.asyncio
    async def test_401_refreshes_token_and_retries_once(self) -> None:
        store = _store()
        store._credentials.access_token = AsyncMock(side_effect=["stale", "fresh"])
        store._client.request = AsyncMock(
            side_effect=[_response(401, {}), _response(200, content=b"{}")]
        )
        result = await store.get_item_content("x")
        assert result == b"{}"
        store._credentials.invalidate.assert_called_once()
        second_headers = store._client.request.call_args_list[1].kwargs["headers"]
        assert second_headers["Authorization"] == "Bearer fresh"

    @pytest.mark.asyncio
    async def test_second_401_raises_unavailable(self) -> None:
        store = _store()
        store._client.request = AsyncMock(return_value=_response(401, {}))
        with pytest.raises(StoreUnavailableError):
            await store.get_item_content("x")
        assert store._client.request.call_count == 2


# ---------------------------------------------------------------------------
# list_items
# ---------------------------------------------------------------------------


class TestListItems:
    @pytest.mark.asyncio
    async def test_exact_name_query(self) -> None:
        store = _store()
        store._client.request = AsyncMock(return_value=_response(200, {"files": []}))
        await store.list_items(FOLDER_ID, name="ledger_u1.json")
        params = store._client.request.call_args.kwargs["params"]
        assert params["q"] == (
            "'folder-1' in parents and trashed = false and name = 'ledger_u1.json'"
        )

    @pytest.mark.asyncio
    async def test_parses_items(self) -> None:
        store = _store()
        files = [
            {"id": "f1", "name": "user_a.json", "createdTime": "2026-01-01T00:00:00Z", "size": "120"},
            {"id": "f2", "name": "user_b.json", "createdTime": "2026-01-02T00:00:00Z"},
        ]
        store._client.request = AsyncMock(return_value=_response(200, {"files": files}))
        result = await store.list_items(FOLDER_ID)
        assert result == [
            StoredItem(id="f1", name="user_a.json", created_at="2026-01-01T00:00:00Z", size=120),
            StoredItem(id="f2", name="user_b.json", created_at="2026-01-02T00:00:00Z", size=None),
        ]

    @pytest.mark.asyncio
    async def test_follows_page_tokens(self) -> None:
        store = _store()
        store._client.request = AsyncMock(side_effect=[
            _response(200, {"files": [{"id": "f1", "name": "user_a.json"}], "nextPageToken": "p2"}),
            _response(200, {"files": [{"id": "f2", "name": "user_b.json"}]}),
        ])
        result = await store.list_items(FOLDER_ID)
        assert [i.id for i in result] == ["f1", "f2"]
        second_params = store._client.request.call_args_list[1].kwargs["params"]
        assert second_params["pageToken"] == "p2"

    @pytest.mark.asyncio
    async def test_contains_filter_rechecked_locally(self) -> None:
        store = _store()
        files = [
            {"id": "f1", "name": "backup_u1_2026.json"},
            {"id": "f2", "name": "backup_u10_2026.json"},
        ]
        store._client.request = AsyncMock(return_value=_response(200, {"files": files}))
        result = await store.list_items(FOLDER_ID, name_contains="backup_u1_")
        assert [i.id for i in result] == ["f1"]


# ---------------------------------------------------------------------------
# create / read / update / delete
# ---------------------------------------------------------------------------


class TestItemOperations:
    @pytest.mark.asyncio
    async def test_create_container(self) -> None:
        store = _store()
        store._client.request = AsyncMock(
            return_value=_response(200, {"id": "new-folder", "name": "Ledger-Cashbook-Data"})
        )
        result = await store.create_container("Ledger-Cashbook-Data")
        assert result == "new-folder"
        kwargs = store._client.request.call_args.kwargs
        assert kwargs["json"] == {
            "name": "Ledger-Cashbook-Data",
            "mimeType": "application/vnd.google-apps.folder",
        }

    @pytest.mark.asyncio
    async def test_create_item_multipart_body(self) -> None:
        store = _store()
        store._client.request = AsyncMock(
            return_value=_response(200, {"id": "f1", "name": "user_a.json", "size": "2"})
        )
        item = await store.create_item(FOLDER_ID, "user_a.json", b"{}")
        assert item.id == "f1"
        args, kwargs = store._client.request.call_args
        assert args == ("POST", "/upload/drive/v3/files")
        assert kwargs["params"]["uploadType"] == "multipart"
        assert kwargs["headers"]["Content-Type"].startswith("multipart/related; boundary=")
        body = kwargs["content"]
        assert b'"parents": ["folder-1"]' in body
        assert b'"name": "user_a.json"' in body

    @pytest.mark.asyncio
    async def test_get_item_content_returns_bytes(self) -> None:
        store = _store()
        store._client.request = AsyncMock(return_value=_response(200, content=b'{"a": 1}'))
        result = await store.get_item_content("f1")
        assert result == b'{"a": 1}'
        args, kwargs = store._client.request.call_args
        assert args == ("GET", "/drive/v3/files/f1")
        assert kwargs["params"] == {"alt": "media"}

    @pytest.mark.asyncio
    async def test_update_item_content(self) -> None:
        store = _store()
        store._client.request = AsyncMock(return_value=_response(200, {"id": "f1"}))
        await store.update_item_content("f1", b"{}")
        args, kwargs = store._client.request.call_args
        assert args == ("PATCH", "/upload/drive/v3/files/f1")
        assert kwargs["params"] == {"uploadType": "media"}
        assert kwargs["content"] == b"{}"

    @pytest.mark.asyncio
    async def test_delete_item(self) -> None:
        store = _store()
        store._client.request = AsyncMock(return_value=_response(204, content=b""))
        await store.delete_item("f1")
        args, _ = store._client.request.call_args
        assert args == ("DELETE", "/drive/v3/files/f1")

    @pytest.mark.asyncio
    async def test_trashed_metadata_counts_as_missing(self) -> None:
        store = _store()
        store._client.request = AsyncMock(
            return_value=_response(200, {"id": "f1", "name": "x", "trashed": True})
        )
        with pytest.raises(ItemNotFoundError):
            await store.get_item_metadata("f1")

    @pytest.mark.asyncio
    async def test_metadata_reports_folders(self) -> None:
        store = _store()
        store._client.request = AsyncMock(side_effect=[
            _response(200, {
                "id": "d1", "name": "Ledger-Cashbook-Data",
                "mimeType": "application/vnd.google-apps.folder",
            }),
            _response(200, {"id": "f1", "name": "user_abc.json", "mimeType": "application/json"}),
        ])
        assert (await store.get_item_metadata("d1")).is_container
        assert not (await store.get_item_metadata("f1")).is_container
        params = store._client.request.call_args.kwargs["params"]
        assert "mimeType" in params["fields"]

    @pytest.mark.asyncio
    async def test_find_containers_query(self) -> None:
        store = _store()
        folder = {
            "id": "d1", "name": "Ledger-Cashbook-Data",
            "mimeType": "application/vnd.google-apps.folder",
        }
        store._client.request = AsyncMock(return_value=_response(200, {"files": [folder]}))
        result = await store.find_containers("Ledger-Cashbook-Data")
        assert [i.id for i in result] == ["d1"]
        assert result[0].is_container
        params = store._client.request.call_args.kwargs["params"]
        assert params["q"] == (
            "mimeType = 'application/vnd.google-apps.folder' "
            "and name = 'Ledger-Cashbook-Data' and trashed = false"
        )


# ---------------------------------------------------------------------------
# close / protocol conformance
# ---------------------------------------------------------------------------


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_close_closes_clients(self) -> None:
        store = _store()
        store._client.aclose = AsyncMock()
        await store.close()
        store._client.aclose.assert_called_once()
        store._credentials.close.assert_called_once()

    def test_implements_file_store(self) -> None:
        assert isinstance(_store(), FileStore)
