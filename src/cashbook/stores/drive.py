"""GoogleDriveStore: FileStore implementation using the Drive v3 REST API.

Self-contained: uses raw httpx, no googleapis client. Every container is
a Drive folder and every record a JSON file whose parent is that folder.

Endpoints used (Drive API v3):
- List files: GET /drive/v3/files?q=...&fields=...&pageToken=...
- Create folder: POST /drive/v3/files -> JSON body with folder mimeType
- Find folders: GET /drive/v3/files?q=mimeType = folder and name = ...
- Create file: POST /upload/drive/v3/files?uploadType=multipart
- Read content: GET /drive/v3/files/{id}?alt=media
- Update content: PATCH /upload/drive/v3/files/{id}?uploadType=media
- Delete: DELETE /drive/v3/files/{id}
- Metadata: GET /drive/v3/files/{id}?fields=...
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

import httpx

from cashbook.constants import JSON_MIME_TYPE
from cashbook.credentials import GoogleOAuthCredentials
from cashbook.errors import (
    FileStoreError,
    ItemNotFoundError,
    StoreUnavailableError,
)
from cashbook.file_store import StoredItem

logger = logging.getLogger(__name__)

_BASE_URL = "https://www.googleapis.com"
_FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
_ITEM_FIELDS = "id, name, createdTime, size, mimeType, trashed"
_PAGE_SIZE = 1000


def _quote(value: str) -> str:
    """Escape a literal for a Drive ``q`` expression."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _item_from_json(data: dict[str, Any]) -> StoredItem:
    size = data.get("size")
    return StoredItem(
        id=str(data.get("id", "")),
        name=str(data.get("name", "")),
        created_at=str(data.get("createdTime", "")),
        size=int(size) if size is not None else None,
        is_container=data.get("mimeType") == _FOLDER_MIME_TYPE,
    )


def _is_quota_error(resp: httpx.Response) -> bool:
    if resp.status_code == 429:
        return True
    if resp.status_code != 403:
        return False
    return "rate" in resp.text.lower() or "quota" in resp.text.lower()


class GoogleDriveStore:
    """Flat file store over Google Drive.

    Implements the ``FileStore`` protocol. Access tokens come from a
    ``GoogleOAuthCredentials`` holder; a 401 invalidates the cached token
    and the request is retried once with a fresh one.
    """

    def __init__(
        self,
        credentials: GoogleOAuthCredentials,
        *,
        base_url: str = _BASE_URL,
        timeout: float = 30.0,
    ) -> None:
        self._credentials = credentials
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def close(self) -> None:
        """Close the underlying HTTP clients."""
        await self._client.aclose()
        await self._credentials.close()

    # -- internal request dispatcher -----------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send an authorized request and map failures to transport errors."""
        extra_headers = kwargs.pop("headers", {})
        for attempt in range(2):
            token = await self._credentials.access_token()
            headers = {"Authorization": f"Bearer {token}", **extra_headers}
            try:
                resp = await self._client.request(method, url, headers=headers, **kwargs)
            except httpx.TimeoutException as exc:
                raise StoreUnavailableError(f"Drive request timed out: {exc}") from exc
            except httpx.HTTPError as exc:
                raise StoreUnavailableError(f"Drive request failed: {exc}") from exc

            if resp.status_code == 401 and attempt == 0:
                logger.warning("Drive rejected access token, refreshing and retrying.")
                self._credentials.invalidate()
                continue
            break

        if resp.status_code < 400:
            return resp
        if resp.status_code == 404:
            raise ItemNotFoundError(resp.text, status_code=404)
        if resp.status_code >= 500 or resp.status_code == 401 or _is_quota_error(resp):
            raise StoreUnavailableError(resp.text, status_code=resp.status_code)
        raise FileStoreError(resp.text, status_code=resp.status_code)

    async def _list_pages(self, params: dict[str, Any]) -> list[StoredItem]:
        """Run a files.list query, following ``nextPageToken`` to the end."""
        items: list[StoredItem] = []
        while True:
            resp = await self._request("GET", "/drive/v3/files", params=params)
            data = resp.json()
            items.extend(_item_from_json(f) for f in data.get("files", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return items
            params["pageToken"] = page_token

    # -- FileStore protocol ----------------------------------------------------

    async def create_container(self, name: str) -> str:
        resp = await self._request(
            "POST",
            "/drive/v3/files",
            params={"fields": "id, name, webViewLink"},
            json={"name": name, "mimeType": _FOLDER_MIME_TYPE},
        )
        data = resp.json()
        logger.info(
            "Created Drive folder %s (%s) %s",
            data.get("name"), data.get("id"), data.get("webViewLink", ""),
        )
        return str(data["id"])

    async def find_containers(self, name: str) -> list[StoredItem]:
        """List non-trashed folders called ``name`` visible to these credentials."""
        params: dict[str, Any] = {
            "q": (
                f"mimeType = '{_FOLDER_MIME_TYPE}' and name = '{_quote(name)}' "
                "and trashed = false"
            ),
            "fields": "nextPageToken, files(id, name, createdTime, mimeType)",
            "pageSize": _PAGE_SIZE,
        }
        return await self._list_pages(params)

    async def list_items(
        self,
        container_id: str,
        *,
        name: str | None = None,
        name_contains: str | None = None,
    ) -> list[StoredItem]:
        """List non-trashed children of a folder, following every page.

        Drive's ``name contains`` matches on name prefixes of words, so
        results are filtered again locally by plain substring.
        """
        clauses = [f"'{_quote(container_id)}' in parents", "trashed = false"]
        if name is not None:
            clauses.append(f"name = '{_quote(name)}'")
        if name_contains is not None:
            clauses.append(f"name contains '{_quote(name_contains)}'")
        params: dict[str, Any] = {
            "q": " and ".join(clauses),
            "fields": "nextPageToken, files(id, name, createdTime, size)",
            "pageSize": _PAGE_SIZE,
        }

        items = await self._list_pages(params)
        if name_contains is not None:
            items = [i for i in items if name_contains in i.name]
        return items

    async def create_item(
        self, container_id: str, name: str, content: bytes
    ) -> StoredItem:
        """Upload a new file as a multipart/related request."""
        boundary = f"cashbook-{uuid.uuid4().hex}"
        metadata = json.dumps({"name": name, "parents": [container_id]})
        body = b"".join([
            f"--{boundary}\r\n".encode(),
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            metadata.encode("utf-8"),
            f"\r\n--{boundary}\r\n".encode(),
            f"Content-Type: {JSON_MIME_TYPE}\r\n\r\n".encode(),
            content,
            f"\r\n--{boundary}--".encode(),
        ])
        resp = await self._request(
            "POST",
            "/upload/drive/v3/files",
            params={"uploadType": "multipart", "fields": _ITEM_FIELDS},
            content=body,
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        return _item_from_json(resp.json())

    async def get_item_content(self, item_id: str) -> bytes:
        resp = await self._request(
            "GET", f"/drive/v3/files/{item_id}", params={"alt": "media"}
        )
        return resp.content

    async def update_item_content(self, item_id: str, content: bytes) -> None:
        await self._request(
            "PATCH",
            f"/upload/drive/v3/files/{item_id}",
            params={"uploadType": "media"},
            content=content,
            headers={"Content-Type": JSON_MIME_TYPE},
        )

    async def delete_item(self, item_id: str) -> None:
        await self._request("DELETE", f"/drive/v3/files/{item_id}")

    async def get_item_metadata(self, item_id: str) -> StoredItem:
        """Fetch one item's metadata. Trashed items count as missing."""
        resp = await self._request(
            "GET", f"/drive/v3/files/{item_id}", params={"fields": _ITEM_FIELDS}
        )
        data = resp.json()
        if data.get("trashed"):
            raise ItemNotFoundError(f"Item {item_id} is in the trash.", status_code=404)
        return _item_from_json(data)
