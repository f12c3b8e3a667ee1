"""Storage gateway client — one JSON POST per action against a single endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from sandbox_drive.gateway.actions import (
    CheckHealth,
    CreateFolder,
    DeleteEntry,
    EnsureFolder,
    GatewayAction,
    ListFolder,
    RenameFolder,
    UploadFile,
)
from sandbox_drive.gateway.errors import (
    CompatibilityError,
    ConfigurationError,
    ProtocolError,
    RemoteError,
    TransportError,
)
from sandbox_drive.gateway.models import (
    FIELD_FILES,
    FIELD_ID,
    FIELD_MESSAGE,
    FIELD_STATUS,
    FIELD_VERSION,
    STATUS_ERROR,
    STATUS_SUCCESS,
    RemoteEntry,
)

if TYPE_CHECKING:
    from sandbox_drive.config import ConfigStore
    from sandbox_drive.upload.encoder import EncodedPayload

logger = logging.getLogger(__name__)

# Simple-request content type: the gateway host rejects CORS preflights.
REQUEST_CONTENT_TYPE = "text/plain;charset=utf-8"
MARKUP_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


def is_markup(content_type: str) -> bool:
    """Return True if a Content-Type header names an HTML document."""
    lowered = content_type.lower()
    return any(markup in lowered for markup in MARKUP_CONTENT_TYPES)


def classify_response(action: str, body: dict[str, Any]) -> dict[str, Any]:
    """Apply the status/message decision table to a parsed gateway response.

    ======================  ==========================
    body                    outcome
    ======================  ==========================
    status == "success"     body returned as payload
    status == "error"       RemoteError(message)
    no status, message      RemoteError(message)
    anything else           CompatibilityError
    ======================  ==========================

    Args:
        action: Name of the invoked action, attached to raised errors.
        body: Parsed JSON object returned by the gateway.

    Returns:
        The response body for successful calls.

    Raises:
        RemoteError: The gateway reported a business-level failure.
        CompatibilityError: The gateway does not understand the action.
    """
    status = body.get(FIELD_STATUS)
    message = body.get(FIELD_MESSAGE)

    if status == STATUS_SUCCESS:
        return body
    if status == STATUS_ERROR or (status is None and message):
        text = str(message) if message else f"Gateway reported an error for '{action}'"
        logger.warning("[classify_response] gateway error; action:%s;message:%s", action, text)
        raise RemoteError(action, text)

    logger.warning(
        "[classify_response] unrecognized response shape; action:%s;status:%s", action, status
    )
    raise CompatibilityError(
        action,
        f"The deployed gateway does not support '{action}'. Update the gateway script "
        "to the current version to enable this feature.",
    )


class GatewayClient:
    """Executes gateway actions against the configured endpoint.

    Ordinary calls have no client-side timeout. No call is retried.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client.

        Args:
            config_store: Source of the current gateway configuration snapshot.
            http_client: Shared AsyncClient to send requests with. When omitted,
                a short-lived client is opened for every call.
        """
        self._config = config_store
        self._http = http_client

    async def invoke(self, action: GatewayAction) -> dict[str, Any]:
        """Run an action against the configured endpoint.

        Raises:
            ConfigurationError: If the endpoint or root folder is not configured.
            TransportError: If the request failed at the network level.
            ProtocolError: If the gateway did not answer with JSON.
            RemoteError: If the gateway reported an error.
            CompatibilityError: If the gateway predates the action.
        """
        config = self._config.current.require()
        return await self.send(config.endpoint_url, action)

    async def send(
        self,
        endpoint_url: str,
        action: GatewayAction,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Run an action against an explicit endpoint.

        Args:
            endpoint_url: Gateway URL to POST to.
            action: The action to run.
            timeout: Seconds before the call is cancelled; None waits forever.

        Returns:
            The successful response body.
        """
        name = action.ACTION
        payload = action.to_payload()
        try:
            if timeout is None:
                response = await self._post(endpoint_url, payload, None)
            else:
                response = await asyncio.wait_for(
                    self._post(endpoint_url, payload, timeout), timeout
                )
        except httpx.InvalidURL as exc:
            raise ConfigurationError(f"Gateway URL '{endpoint_url}' is not valid: {exc}") from exc
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            logger.error("[send] gateway unreachable; action:%s;error:%r", name, exc)
            raise TransportError(
                name, "Network failure reaching the gateway. Check the gateway URL."
            ) from exc

        return self._parse(name, response)

    async def _post(
        self, endpoint_url: str, payload: dict[str, Any], timeout: float | None
    ) -> httpx.Response:
        content = json.dumps(payload).encode("utf-8")
        headers = {"Content-Type": REQUEST_CONTENT_TYPE}
        if self._http is not None:
            return await self._http.post(
                endpoint_url,
                content=content,
                headers=headers,
                timeout=timeout,
                follow_redirects=True,
            )
        async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as client:
            return await client.post(endpoint_url, content=content, headers=headers)

    @staticmethod
    def _parse(action: str, response: httpx.Response) -> dict[str, Any]:
        content_type = response.headers.get("content-type", "")
        if is_markup(content_type):
            logger.error(
                "[_parse] markup response; action:%s;http_status:%d", action, response.status_code
            )
            raise ProtocolError(
                action,
                "The gateway returned an HTML page instead of JSON. Check that it is "
                "deployed with anonymous access.",
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise ProtocolError(action, "The gateway returned a response that is not JSON.") from exc
        if not isinstance(body, dict):
            raise ProtocolError(action, "The gateway returned JSON that is not an object.")
        return classify_response(action, body)

    # ------------------------------------------------------------------
    # Typed actions
    # ------------------------------------------------------------------

    async def list_folder(self, folder_id: str) -> list[RemoteEntry]:
        """List the direct children of a folder."""
        action = ListFolder(folder_id=folder_id)
        body = await self.invoke(action)
        files = body.get(FIELD_FILES)
        if not isinstance(files, list):
            raise CompatibilityError(action.ACTION, "Gateway listing did not include a file list.")
        try:
            return [RemoteEntry.from_json(raw) for raw in files if isinstance(raw, dict)]
        except (TypeError, ValueError) as exc:
            logger.warning(
                "[list_folder] malformed listing entry; folder_id:%s;error:%s", folder_id, exc
            )
            raise CompatibilityError(
                action.ACTION, "Gateway listing contained an entry that could not be read."
            ) from exc

    async def upload(self, folder_id: str, encoded: EncodedPayload) -> dict[str, Any]:
        """Upload a fully encoded file into a folder.

        Returns:
            The response body; newer gateways include the new file's ``id`` and ``url``.
        """
        action = UploadFile(
            folder_id=folder_id,
            filename=encoded.filename,
            mime_type=encoded.mime_type,
            data=encoded.data,
        )
        body = await self.invoke(action)
        logger.info(
            "[upload] uploaded file; folder_id:%s;filename:%s;size:%d",
            folder_id,
            encoded.filename,
            encoded.size,
        )
        return body

    async def create_folder(self, parent_id: str, name: str) -> str | None:
        """Create a child folder; returns its id when the gateway reports one."""
        body = await self.invoke(CreateFolder(folder_id=parent_id, name=name))
        folder_id = body.get(FIELD_ID)
        return str(folder_id) if folder_id else None

    async def ensure_folder(self, root_id: str, name: str) -> str:
        """Create or fetch the named child of ``root_id`` and return its id."""
        action = EnsureFolder(root_id=root_id, name=name)
        body = await self.invoke(action)
        folder_id = body.get(FIELD_ID)
        if not folder_id:
            raise CompatibilityError(action.ACTION, "Gateway did not return the folder id.")
        return str(folder_id)

    async def rename_folder(self, folder_id: str, name: str) -> None:
        await self.invoke(RenameFolder(folder_id=folder_id, name=name))

    async def delete(self, entry_id: str) -> None:
        await self.invoke(DeleteEntry(entry_id=entry_id))

    async def check_health(self, endpoint_url: str, timeout: float) -> str | None:
        """Ask the gateway for its version within ``timeout`` seconds."""
        body = await self.send(endpoint_url, CheckHealth(), timeout=timeout)
        version = body.get(FIELD_VERSION)
        return str(version) if version else None


def gateway_client_from_config(config_store: ConfigStore) -> GatewayClient:
    """Construct a GatewayClient reading from the shared configuration store.

    Args:
        config_store: Shared configuration store.

    Returns:
        Configured GatewayClient instance.
    """
    return GatewayClient(config_store=config_store)
