#!/usr/bin/env python3
"""Check that the configured Drive credentials and folder are usable.

Refreshes the access token, resolves GOOGLE_DRIVE_FOLDER_ID (or an
existing folder by name), and counts the records in it. Never creates
anything. Exits non-zero on any failure.
"""

from __future__ import annotations

import asyncio
import sys

from cashbook.config import load_config
from cashbook.constants import RecordKind
from cashbook.container import ContainerResolver
from cashbook.credentials import GoogleOAuthCredentials
from cashbook.errors import ContainerConfigError, CredentialError, FileStoreError
from cashbook.stores.drive import GoogleDriveStore


async def _check() -> int:
    config = load_config()
    credentials = GoogleOAuthCredentials(
        client_id=config.google_client_id or "",
        client_secret=config.google_client_secret or "",
        refresh_token=config.google_refresh_token or "",
    )
    store = GoogleDriveStore(credentials, timeout=config.storage_timeout_secs)
    try:
        await credentials.refresh()
        print("Token refresh: ok")

        resolver = ContainerResolver(store, config.drive_folder_id, allow_create=False)
        container_id = await resolver.ensure_container()
        print(f"Container: {container_id}")

        items = await store.list_items(container_id)
        for kind in RecordKind:
            count = sum(1 for i in items if i.name.startswith(kind.prefix))
            print(f"  {kind.name.lower():<7} {count}")
        return 0
    except CredentialError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except (ContainerConfigError, FileStoreError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await store.close()


def main() -> None:
    sys.exit(asyncio.run(_check()))


if __name__ == "__main__":
    main()
