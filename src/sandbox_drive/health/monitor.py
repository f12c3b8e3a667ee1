"""Gateway version monitoring and connection probing."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sandbox_drive.config import DEFAULT_HEALTH_TIMEOUT_SECONDS
from sandbox_drive.gateway.actions import ListFolder
from sandbox_drive.gateway.errors import (
    CompatibilityError,
    DriveError,
    ProtocolError,
    RemoteError,
    TransportError,
)
from sandbox_drive.gateway.models import FIELD_FILES

if TYPE_CHECKING:
    from sandbox_drive.config import AppConfig, GatewayConfig
    from sandbox_drive.gateway.client import GatewayClient

logger = logging.getLogger(__name__)

# Bump together with the gateway script whenever its actions change.
EXPECTED_GATEWAY_VERSION = "v1.1.0"


class CompatibilityState(str, enum.Enum):
    """Outcome of a health check against the configured gateway."""

    CHECKING = "checking"
    MATCHES = "matches"
    NOT_CONFIGURED = "not_configured"
    CONNECTION_ERROR = "connection_error"
    PROTOCOL_ERROR = "protocol_error"
    OUTDATED = "outdated"

    @property
    def trusted(self) -> bool:
        return self is CompatibilityState.MATCHES


class VersionMonitor:
    """Classifies the deployed gateway against the expected version.

    Advisory only: the state annotates the UI and never blocks operations.
    """

    def __init__(
        self,
        gateway: GatewayClient,
        timeout: float = DEFAULT_HEALTH_TIMEOUT_SECONDS,
        expected_version: str = EXPECTED_GATEWAY_VERSION,
    ) -> None:
        self._gateway = gateway
        self._timeout = timeout
        self._expected_version = expected_version
        self._state = CompatibilityState.CHECKING
        self._remote_version: str | None = None
        self._checked_url: str | None = None

    @property
    def state(self) -> CompatibilityState:
        return self._state

    @property
    def remote_version(self) -> str | None:
        return self._remote_version

    @property
    def expected_version(self) -> str:
        return self._expected_version

    async def check(self, endpoint_url: str) -> CompatibilityState:
        """Run a bounded-time health check and classify the result.

        Never raises for gateway failures; they become states instead.

        Args:
            endpoint_url: Gateway URL to probe; blank means not configured.

        Returns:
            The resulting CompatibilityState (also kept in ``state``).
        """
        url = (endpoint_url or "").strip()
        self._checked_url = url
        self._remote_version = None
        if not url:
            self._state = CompatibilityState.NOT_CONFIGURED
            return self._state

        self._state = CompatibilityState.CHECKING
        version: str | None = None
        try:
            version = await self._gateway.check_health(url, timeout=self._timeout)
        except TransportError:
            state = CompatibilityState.CONNECTION_ERROR
        except ProtocolError:
            state = CompatibilityState.PROTOCOL_ERROR
        except (RemoteError, CompatibilityError):
            state = CompatibilityState.OUTDATED
        except DriveError:
            # An unusable URL can never connect.
            state = CompatibilityState.CONNECTION_ERROR
        else:
            if version == self._expected_version:
                state = CompatibilityState.MATCHES
            else:
                state = CompatibilityState.OUTDATED

        # A newer check for a different endpoint owns the state now.
        if self._checked_url == url:
            self._state = state
            self._remote_version = version
        logger.info(
            "[check] gateway health classified; state:%s;remote_version:%s;expected:%s",
            state.value,
            version,
            self._expected_version,
        )
        return state

    async def ensure_current(self, endpoint_url: str) -> CompatibilityState:
        """Recheck only if the endpoint differs from the last checked one."""
        url = (endpoint_url or "").strip()
        if url == self._checked_url and self._state is not CompatibilityState.CHECKING:
            return self._state
        return await self.check(url)


@dataclass(frozen=True)
class ConnectionProbe:
    """Result of listing the shared root as a connectivity test."""

    success: bool
    message: str
    file_count: int = 0


async def probe_connection(gateway: GatewayClient, config: GatewayConfig) -> ConnectionProbe:
    """List the shared root folder and report whether the gateway works.

    Never raises for drive errors; the failure message is returned instead.
    """
    try:
        config.require()
        body = await gateway.send(config.endpoint_url, ListFolder(folder_id=config.root_folder_id))
    except DriveError as exc:
        logger.warning("[probe_connection] connection test failed; error:%s", exc.message)
        return ConnectionProbe(success=False, message=exc.message)

    files = body.get(FIELD_FILES)
    count = len(files) if isinstance(files, list) else 0
    return ConnectionProbe(
        success=True,
        message=f"Connected: {count} item(s) in the root folder.",
        file_count=count,
    )


def version_monitor_from_config(gateway: GatewayClient, config: AppConfig) -> VersionMonitor:
    """Construct a VersionMonitor from application configuration."""
    return VersionMonitor(gateway=gateway, timeout=config.health_timeout_seconds)
