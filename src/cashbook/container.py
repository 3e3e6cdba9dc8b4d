"""Resolve (or create) the single folder that holds every record."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cashbook.constants import CONTAINER_NAME
from cashbook.errors import ContainerConfigError, FileStoreError, StoreUnavailableError

if TYPE_CHECKING:
    from cashbook.file_store import FileStore

logger = logging.getLogger(__name__)


class ContainerResolver:
    """Resolve the deployment's container id once and cache it.

    - A configured id that names an accessible container is used as-is.
    - A configured id the store reports as missing, forbidden or not a
      container raises ``ContainerConfigError`` unless ``allow_recreate``
      is set; records under the old id would otherwise be orphaned
      without notice.
    - With no configured id, an existing container called ``name`` is
      reused. Several of them raise ``ContainerConfigError``. Only when
      there is none is a new one created (if ``allow_create``), and its
      id is logged so the operator can pin it.
    - Transport failures propagate as ``StoreUnavailableError`` and never
      trigger a create.
    """

    def __init__(
        self,
        store: FileStore,
        container_id: str | None = None,
        *,
        name: str = CONTAINER_NAME,
        allow_recreate: bool = False,
        allow_create: bool = True,
    ) -> None:
        self._store = store
        self._configured_id = container_id or None
        self._name = name
        self._allow_recreate = allow_recreate
        self._allow_create = allow_create
        self._resolved_id: str | None = None

    @property
    def container_id(self) -> str | None:
        """The resolved id, or None before the first ``ensure_container()``."""
        return self._resolved_id

    async def ensure_container(self) -> str:
        if self._resolved_id is not None:
            return self._resolved_id

        if self._configured_id:
            problem = await self._check_configured()
            if problem is None:
                self._resolved_id = self._configured_id
                return self._resolved_id
            if not self._allow_recreate:
                raise ContainerConfigError(
                    f"Configured container {self._configured_id} is not usable "
                    f"({problem}). Fix GOOGLE_DRIVE_FOLDER_ID or set "
                    "ALLOW_CONTAINER_RECREATE=true to start a new one."
                )
            logger.warning(
                "Cannot use container %s (%s); looking for another. "
                "Records under the old container will not be visible.",
                self._configured_id, problem,
            )

        self._resolved_id = await self._find_or_create()
        return self._resolved_id

    async def _check_configured(self) -> str | None:
        """Return why the configured id is unusable, or None if it is fine."""
        try:
            item = await self._store.get_item_metadata(self._configured_id)
        except StoreUnavailableError:
            raise
        except FileStoreError as exc:
            return str(exc)
        if not item.is_container:
            return f"{item.name!r} is not a folder"
        logger.info("Using existing container %s (%s).", item.name, item.id)
        return None

    async def _find_or_create(self) -> str:
        existing = await self._store.find_containers(self._name)
        if len(existing) > 1:
            ids = ", ".join(item.id for item in existing)
            raise ContainerConfigError(
                f"Found {len(existing)} containers named {self._name!r} ({ids}). "
                "Set GOOGLE_DRIVE_FOLDER_ID to the one holding your records."
            )
        if existing:
            found = existing[0].id
            logger.warning(
                "Reusing container %r with id %s. Set GOOGLE_DRIVE_FOLDER_ID=%s "
                "to pin it.",
                self._name, found, found,
            )
            return found

        if not self._allow_create:
            raise ContainerConfigError(
                f"No container named {self._name!r} was found and none is configured."
            )
        new_id = await self._store.create_container(self._name)
        logger.warning(
            "Created container %r with id %s. Set GOOGLE_DRIVE_FOLDER_ID=%s "
            "to pin it.",
            self._name, new_id, new_id,
        )
        return new_id
