"""Drive session — wires configuration, gateway, sandbox and navigation together."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from sandbox_drive.config import ConfigStore
from sandbox_drive.gateway.client import GatewayClient, gateway_client_from_config
from sandbox_drive.gateway.errors import CompatibilityError
from sandbox_drive.health.monitor import (
    CompatibilityState,
    ConnectionProbe,
    VersionMonitor,
    probe_connection,
    version_monitor_from_config,
)
from sandbox_drive.navigation.controller import ListingState, NavigationController
from sandbox_drive.sandbox.cache import root_cache_from_config
from sandbox_drive.sandbox.resolver import SandboxRootResolver
from sandbox_drive.upload.encoder import UploadEncoder, upload_encoder_from_config

if TYPE_CHECKING:
    from sandbox_drive.config import AppConfig, GatewayConfig
    from sandbox_drive.gateway.models import Identity

logger = logging.getLogger(__name__)


class DriveSession:
    """Application-level entry point for browsing and changing the remote drive.

    Mutations act on the navigator's current folder and refresh its listing
    afterwards. A rename rejected as unsupported by the gateway disables
    renaming until the gateway endpoint changes.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        gateway: GatewayClient,
        resolver: SandboxRootResolver,
        monitor: VersionMonitor,
        encoder: UploadEncoder,
    ) -> None:
        """Initialise the session.

        Args:
            config_store: Shared gateway configuration.
            gateway: Client for all gateway actions.
            resolver: Resolves the sandbox root for each identity.
            monitor: Tracks gateway compatibility.
            encoder: Prepares upload payloads.
        """
        self._config = config_store
        self._gateway = gateway
        self._resolver = resolver
        self._monitor = monitor
        self._encoder = encoder
        # Endpoint whose gateway rejected renameFolder, if any.
        self._rename_disabled_for: str | None = None

    @property
    def config(self) -> GatewayConfig:
        return self._config.current

    @property
    def monitor(self) -> VersionMonitor:
        return self._monitor

    @property
    def compatibility(self) -> CompatibilityState:
        return self._monitor.state

    @property
    def rename_supported(self) -> bool:
        return self._rename_disabled_for != self._config.current.endpoint_url

    async def open(self, identity: Identity) -> NavigationController:
        """Resolve the identity's sandbox root and load its first listing.

        Raises:
            ConfigurationError: If the gateway is not configured.
            GatewayError: If the root cannot be resolved or listed.
        """
        root_id = await self._resolver.resolve_root(identity)
        navigator = NavigationController(self._gateway, root_id)
        logger.info("[open] navigation session opened; identity:%s;root_id:%s", identity.id, root_id)
        await navigator.refresh()
        return navigator

    async def check_gateway(self) -> CompatibilityState:
        """Classify the configured gateway, rechecking only after endpoint changes."""
        return await self._monitor.ensure_current(self._config.current.endpoint_url)

    async def test_connection(self) -> ConnectionProbe:
        return await probe_connection(self._gateway, self._config.current)

    async def save_config(
        self,
        endpoint_url: str | None = None,
        root_folder_id: str | None = None,
    ) -> GatewayConfig:
        """Publish new gateway settings and reclassify a changed endpoint.

        Raises:
            ConfigurationError: If the endpoint URL is invalid.
        """
        previous = self._config.current
        snapshot = await self._config.save(endpoint_url=endpoint_url, root_folder_id=root_folder_id)
        if snapshot.endpoint_url != previous.endpoint_url:
            await self._monitor.ensure_current(snapshot.endpoint_url)
        return snapshot

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def upload(self, navigator: NavigationController, path: str | Path) -> ListingState:
        """Upload a local file into the current folder.

        Raises:
            SizeError: If the file exceeds the upload limit (nothing is sent).
            GatewayError: If the upload fails.
        """
        encoded = self._encoder.prepare(path)
        await self._gateway.upload(navigator.current_folder_id, encoded)
        return await navigator.refresh()

    async def upload_bytes(
        self,
        navigator: NavigationController,
        filename: str,
        content: bytes,
        mime_type: str | None = None,
    ) -> ListingState:
        """Upload in-memory content into the current folder."""
        encoded = self._encoder.prepare_bytes(filename, content, mime_type)
        await self._gateway.upload(navigator.current_folder_id, encoded)
        return await navigator.refresh()

    async def create_folder(self, navigator: NavigationController, name: str) -> ListingState:
        """Create a sub-folder of the current folder.

        Raises:
            ValueError: If ``name`` is blank.
        """
        clean = _require_name(name)
        await self._gateway.create_folder(navigator.current_folder_id, clean)
        return await navigator.refresh()

    async def rename_folder(
        self, navigator: NavigationController, folder_id: str, name: str
    ) -> ListingState:
        """Rename a folder in the current listing.

        Raises:
            ValueError: If ``name`` is blank.
            CompatibilityError: If the deployed gateway cannot rename folders.
        """
        clean = _require_name(name)
        if not self.rename_supported:
            raise CompatibilityError(
                "renameFolder",
                "Renaming is unavailable: the deployed gateway is outdated.",
            )
        endpoint_url = self._config.current.endpoint_url
        try:
            await self._gateway.rename_folder(folder_id, clean)
        except CompatibilityError:
            self._rename_disabled_for = endpoint_url
            logger.warning("[rename_folder] gateway lacks rename support; disabling rename")
            raise
        return await navigator.refresh()

    async def delete(self, navigator: NavigationController, entry_id: str) -> ListingState:
        """Delete a file or folder and refresh the current listing."""
        await self._gateway.delete(entry_id)
        return await navigator.refresh()


def _require_name(name: str) -> str:
    clean = (name or "").strip()
    if not clean:
        raise ValueError("Folder name must not be empty")
    return clean


def drive_session_from_config(config: AppConfig) -> DriveSession:
    """Construct a DriveSession from application configuration.

    Creates the shared ConfigStore and GatewayClient, then wires the resolver,
    monitor and encoder around them.

    Args:
        config: Application configuration instance.

    Returns:
        Configured DriveSession instance.
    """
    store = ConfigStore(config.gateway)
    gateway = gateway_client_from_config(store)
    resolver = SandboxRootResolver(
        config_store=store,
        gateway=gateway,
        cache=root_cache_from_config(config),
        privileged_roles=config.privileged_roles,
    )
    return DriveSession(
        config_store=store,
        gateway=gateway,
        resolver=resolver,
        monitor=version_monitor_from_config(gateway, config),
        encoder=upload_encoder_from_config(config),
    )
