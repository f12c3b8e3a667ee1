"""Sandbox root resolution — shared root for privileged roles, personal root otherwise."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from sandbox_drive.config import DEFAULT_PRIVILEGED_ROLES

if TYPE_CHECKING:
    from sandbox_drive.config import ConfigStore
    from sandbox_drive.gateway.client import GatewayClient
    from sandbox_drive.gateway.models import Identity
    from sandbox_drive.sandbox.cache import RootCache

logger = logging.getLogger(__name__)


def personal_folder_name(identity: Identity) -> str:
    """Deterministic, role-qualified display name of an identity's personal root."""
    return f"{identity.role}-{identity.id}"


class SandboxRootResolver:
    """Computes the folder above which an identity may never navigate."""

    def __init__(
        self,
        config_store: ConfigStore,
        gateway: GatewayClient,
        cache: RootCache,
        privileged_roles: Iterable[str] = DEFAULT_PRIVILEGED_ROLES,
    ) -> None:
        """Initialise the resolver.

        Args:
            config_store: Source of the shared root folder id.
            gateway: Client used to provision personal roots.
            cache: Side-cache of resolved personal roots, keyed by identity id.
            privileged_roles: Roles that browse the shared root directly.
        """
        self._config = config_store
        self._gateway = gateway
        self._cache = cache
        self._privileged_roles = frozenset(privileged_roles)
        self._locks: dict[str, asyncio.Lock] = {}

    def is_privileged(self, identity: Identity) -> bool:
        return identity.role in self._privileged_roles

    async def resolve_root(self, identity: Identity) -> str:
        """Return the sandbox root folder id for an identity.

        Non-privileged identities get a personal folder under the shared root,
        created through ``ensureFolder`` on first access. The resolved id is
        written to the cache and back onto ``identity.personal_root_id``.

        Raises:
            ConfigurationError: If the gateway or shared root is not configured.
            GatewayError: If the personal root cannot be provisioned. The
                identity is never given the shared root instead.
        """
        config = self._config.current.require()
        if self.is_privileged(identity):
            return config.root_folder_id

        if identity.personal_root_id:
            return identity.personal_root_id

        lock = self._locks.setdefault(identity.id, asyncio.Lock())
        async with lock:
            # Another task may have provisioned the root while we waited.
            if identity.personal_root_id:
                return identity.personal_root_id

            # Blob-backed caches do blocking I/O; keep it off the event loop.
            cached = await asyncio.to_thread(self._cache.get, identity.id)
            if cached:
                identity.personal_root_id = cached
                self._release_lock(identity.id, lock)
                return cached

            name = personal_folder_name(identity)
            logger.info(
                "[resolve_root] provisioning personal root; identity:%s;role:%s",
                identity.id,
                identity.role,
            )
            folder_id = await self._gateway.ensure_folder(config.root_folder_id, name)
            await asyncio.to_thread(self._cache.put, identity.id, folder_id)
            identity.personal_root_id = folder_id
            self._release_lock(identity.id, lock)
            logger.info(
                "[resolve_root] personal root ready; identity:%s;folder_id:%s",
                identity.id,
                folder_id,
            )
            return folder_id

    def _release_lock(self, identity_id: str, lock: asyncio.Lock) -> None:
        # A resolved identity is served from the cache from now on.
        if self._locks.get(identity_id) is lock:
            del self._locks[identity_id]
