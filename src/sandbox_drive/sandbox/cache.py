"""Personal root caches keyed by identity id."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Protocol

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobServiceClient

if TYPE_CHECKING:
    from sandbox_drive.config import AppConfig

logger = logging.getLogger(__name__)

# Named constants for cache configuration defaults
DEFAULT_CACHE_CONTAINER = "sandbox-drive-state"
DEFAULT_CACHE_BLOB_PREFIX = "personal-roots/"


class RootCache(Protocol):
    """Map from identity id to its resolved personal root folder id."""

    def get(self, identity_id: str) -> str | None: ...

    def put(self, identity_id: str, folder_id: str) -> None: ...


class InMemoryRootCache:
    """Process-local root cache."""

    def __init__(self) -> None:
        self._roots: dict[str, str] = {}

    def get(self, identity_id: str) -> str | None:
        return self._roots.get(identity_id)

    def put(self, identity_id: str, folder_id: str) -> None:
        self._roots[identity_id] = folder_id

    def clear(self) -> None:
        self._roots.clear()

    def __len__(self) -> int:
        return len(self._roots)


class BlobRootCache:
    """Root cache backed by Azure Blob Storage.

    Each identity's personal root id is stored as a UTF-8 text blob named
    after the identity id, so resolution stays idempotent across processes
    and sessions.
    """

    def __init__(
        self,
        storage_connection_string: str,
        container: str = DEFAULT_CACHE_CONTAINER,
        blob_prefix: str = DEFAULT_CACHE_BLOB_PREFIX,
    ) -> None:
        """Initialise the root cache.

        Args:
            storage_connection_string: Azure Storage connection string.
            container: Blob container name for cache storage.
            blob_prefix: Prefix for cache blob paths (e.g. "personal-roots/").
        """
        self._blob_service = BlobServiceClient.from_connection_string(storage_connection_string)
        self._container = container
        self._blob_prefix = blob_prefix

    def get(self, identity_id: str) -> str | None:
        """Return the cached root for an identity, or None on a miss."""
        blob_path = f"{self._blob_prefix}{identity_id}"
        try:
            container_client = self._blob_service.get_container_client(self._container)
            blob_client = container_client.get_blob_client(blob_path)
            data = blob_client.download_blob().readall()
        except ResourceNotFoundError:
            logger.info("[root_cache] cache miss; identity:%s", identity_id)
            return None
        folder_id = data.decode("utf-8").strip()
        logger.info("[root_cache] cache hit; identity:%s", identity_id)
        return folder_id or None

    def put(self, identity_id: str, folder_id: str) -> None:
        """Store an identity's root, creating the container if needed."""
        blob_path = f"{self._blob_prefix}{identity_id}"
        container_client = self._blob_service.get_container_client(self._container)
        with contextlib.suppress(Exception):
            container_client.create_container()

        blob_client = container_client.get_blob_client(blob_path)
        blob_client.upload_blob(folder_id.encode("utf-8"), overwrite=True)
        logger.info("[root_cache] stored; identity:%s;folder_id:%s", identity_id, folder_id)


def root_cache_from_config(config: AppConfig) -> RootCache:
    """Construct the root cache for the application.

    Uses blob storage when a connection string is configured, otherwise an
    in-memory cache.
    """
    if not config.storage_connection_string:
        logger.info("[root_cache_from_config] no storage configured; using in-memory root cache")
        return InMemoryRootCache()
    return BlobRootCache(
        storage_connection_string=config.storage_connection_string,
        container=config.root_cache_container,
        blob_prefix=config.root_cache_blob_prefix,
    )
