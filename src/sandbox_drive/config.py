"""Application configuration loaded from environment variables."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from sandbox_drive.gateway.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 25 * 1024 * 1024
DEFAULT_HEALTH_TIMEOUT_SECONDS = 5.0
DEFAULT_PRIVILEGED_ROLES = ("admin",)

_FOLDER_LINK_MARKER = "/folders/"


def clean_folder_id(value: str) -> str:
    """Extract a folder id from either a bare id or a pasted folder link.

    Links of the form ``https://host/drive/folders/<id>?usp=sharing`` yield
    ``<id>``; anything else is returned stripped.
    """
    text = (value or "").strip()
    if _FOLDER_LINK_MARKER in text:
        tail = text.split(_FOLDER_LINK_MARKER, 1)[1]
        for sep in ("/", "?", "#"):
            tail = tail.split(sep, 1)[0]
        if tail:
            return tail
    return text


def validate_endpoint_url(url: str) -> str:
    """Return the stripped endpoint URL, or raise if it is not an http(s) URL.

    Raises:
        ConfigurationError: If the URL has no http/https scheme or no host.
    """
    text = (url or "").strip()
    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(
            f"Gateway URL '{text}' is not valid; it must be an http(s) web app URL"
        )
    return text


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable snapshot of the gateway endpoint and the global root folder."""

    endpoint_url: str = ""
    root_folder_id: str = ""

    def require(self) -> GatewayConfig:
        """Return self, or raise if either field is blank.

        Raises:
            ConfigurationError: If the endpoint URL or root folder id is empty.
        """
        if not self.endpoint_url.strip():
            raise ConfigurationError(
                "Gateway URL is not set. Configure the storage gateway web app URL first."
            )
        if not self.root_folder_id.strip():
            raise ConfigurationError(
                "Root folder id is not set. Configure the shared root folder id or link first."
            )
        return self


class ConfigStore:
    """Holds the current GatewayConfig snapshot shared by every component.

    Readers take ``current`` once per operation. Writers go through ``save``,
    which is serialized and publishes a fresh frozen snapshot instead of
    mutating the existing one.
    """

    def __init__(self, initial: GatewayConfig | None = None) -> None:
        self._current = initial or GatewayConfig()
        self._write_lock = asyncio.Lock()

    @property
    def current(self) -> GatewayConfig:
        return self._current

    async def save(
        self,
        endpoint_url: str | None = None,
        root_folder_id: str | None = None,
    ) -> GatewayConfig:
        """Validate, publish and return a new snapshot.

        Fields left as None keep their current value.

        Raises:
            ConfigurationError: If the new endpoint URL is not a valid URL.
        """
        async with self._write_lock:
            changes: dict[str, str] = {}
            if endpoint_url is not None:
                changes["endpoint_url"] = validate_endpoint_url(endpoint_url)
            if root_folder_id is not None:
                changes["root_folder_id"] = clean_folder_id(root_folder_id)
            snapshot = dataclasses.replace(self._current, **changes)
            self._current = snapshot
        logger.info(
            "[config_store] published snapshot; endpoint_set:%s;root_set:%s",
            bool(snapshot.endpoint_url),
            bool(snapshot.root_folder_id),
        )
        return snapshot


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    Gateway settings default to empty strings: an unconfigured gateway is
    reported as a ConfigurationError when an operation runs, not at startup.
    """

    endpoint_url: str = ""
    root_folder_id: str = ""
    storage_connection_string: str = ""

    # Domain constants, overridable via env
    root_cache_container: str = "sandbox-drive-state"
    root_cache_blob_prefix: str = "personal-roots/"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    health_timeout_seconds: float = DEFAULT_HEALTH_TIMEOUT_SECONDS
    privileged_roles: tuple[str, ...] = DEFAULT_PRIVILEGED_ROLES

    @property
    def gateway(self) -> GatewayConfig:
        return GatewayConfig(endpoint_url=self.endpoint_url, root_folder_id=self.root_folder_id)


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Environment variables (all optional):
        SD_GATEWAY_URL: URL of the storage gateway web app.
        SD_ROOT_FOLDER_ID: Shared root folder id, or a folder link containing it.
        AzureWebJobsStorage: Azure Storage connection string for the personal root
            cache. When empty, personal roots are cached in memory only.
        SD_ROOT_CACHE_CONTAINER: Blob container for the personal root cache.
        SD_ROOT_CACHE_BLOB_PREFIX: Blob path prefix for personal root entries.
        SD_MAX_UPLOAD_BYTES: Upload size limit in bytes (default: 26214400).
        SD_HEALTH_TIMEOUT_SECONDS: Health check timeout (default: 5).
        SD_PRIVILEGED_ROLES: Comma-separated roles that browse the shared root
            (default: admin).

    Returns:
        Configured AppConfig instance.
    """
    roles = tuple(
        role.strip()
        for role in os.environ.get("SD_PRIVILEGED_ROLES", ",".join(DEFAULT_PRIVILEGED_ROLES)).split(",")
        if role.strip()
    )
    return AppConfig(
        endpoint_url=os.environ.get("SD_GATEWAY_URL", "").strip(),
        root_folder_id=clean_folder_id(os.environ.get("SD_ROOT_FOLDER_ID", "")),
        storage_connection_string=os.environ.get("AzureWebJobsStorage", ""),  # noqa: SIM112
        root_cache_container=os.environ.get("SD_ROOT_CACHE_CONTAINER", "sandbox-drive-state"),
        root_cache_blob_prefix=os.environ.get("SD_ROOT_CACHE_BLOB_PREFIX", "personal-roots/"),
        max_upload_bytes=int(
            os.environ.get("SD_MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES))
        ),
        health_timeout_seconds=float(
            os.environ.get("SD_HEALTH_TIMEOUT_SECONDS", str(DEFAULT_HEALTH_TIMEOUT_SECONDS))
        ),
        privileged_roles=roles,
    )
