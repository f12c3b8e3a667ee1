"""Unit tests for gateway/client.py — request shape and response classification."""

import asyncio
import base64
import json
from collections.abc import Callable

import httpx
import pytest

from sandbox_drive.config import ConfigStore, GatewayConfig
from sandbox_drive.gateway.actions import CheckHealth, ListFolder, RenameFolder
from sandbox_drive.gateway.client import GatewayClient, classify_response, is_markup
from sandbox_drive.gateway.errors import (
    CompatibilityError,
    ConfigurationError,
    ProtocolError,
    RemoteError,
    TransportError,
)
from sandbox_drive.gateway.models import FOLDER_MIME_TYPE
from sandbox_drive.upload.encoder import EncodedPayload

ENDPOINT = "https://gateway.example.com/macros/s/abc/exec"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    endpoint_url: str = ENDPOINT,
    root_folder_id: str = "root-1",
) -> GatewayClient:
    """Return a GatewayClient whose HTTP traffic is served by ``handler``."""
    store = ConfigStore(GatewayConfig(endpoint_url=endpoint_url, root_folder_id=root_folder_id))
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return GatewayClient(store, http_client=http)


def _recording_handler(
    response: httpx.Response, seen: list[httpx.Request]
) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return response

    return handler


def _html(body: bytes = b"<html><body>Sign in</body></html>") -> httpx.Response:
    return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, content=body)


# ---------------------------------------------------------------------------
# classify_response tests
# ---------------------------------------------------------------------------


class TestClassifyResponse:
    def test_success_returns_body(self) -> None:
        body = {"status": "success", "files": []}
        assert classify_response("list", body) is body

    def test_error_status_raises_remote_error_with_verbatim_message(self) -> None:
        with pytest.raises(RemoteError) as exc_info:
            classify_response("delete", {"status": "error", "message": "Exception: not found"})
        assert exc_info.value.message == "Exception: not found"
        assert exc_info.value.action == "delete"

    def test_error_status_without_message_uses_fallback(self) -> None:
        with pytest.raises(RemoteError, match="delete"):
            classify_response("delete", {"status": "error"})

    def test_message_without_status_is_remote_error(self) -> None:
        with pytest.raises(RemoteError, match="quota exceeded"):
            classify_response("upload", {"message": "quota exceeded"})

    def test_empty_body_is_compatibility_error(self) -> None:
        with pytest.raises(CompatibilityError) as exc_info:
            classify_response("renameFolder", {})
        assert exc_info.value.action == "renameFolder"

    def test_unknown_status_is_compatibility_error(self) -> None:
        with pytest.raises(CompatibilityError):
            classify_response("list", {"status": "ok"})


class TestIsMarkup:
    def test_html_detected(self) -> None:
        assert is_markup("text/html; charset=utf-8")

    def test_xhtml_detected(self) -> None:
        assert is_markup("application/xhtml+xml")

    def test_json_not_markup(self) -> None:
        assert not is_markup("application/json; charset=utf-8")


# ---------------------------------------------------------------------------
# invoke() tests
# ---------------------------------------------------------------------------


class TestInvoke:
    @pytest.mark.asyncio
    async def test_posts_action_document_as_text_plain(self) -> None:
        seen: list[httpx.Request] = []
        client = _make_client(
            _recording_handler(httpx.Response(200, json={"status": "success", "files": []}), seen)
        )

        await client.invoke(ListFolder(folder_id="folder-9"))

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == ENDPOINT
        assert request.headers["content-type"].startswith("text/plain")
        assert json.loads(request.content) == {"action": "list", "folderId": "folder-9"}

    @pytest.mark.asyncio
    async def test_ordinary_calls_have_no_timeout(self) -> None:
        seen: list[httpx.Request] = []
        client = _make_client(
            _recording_handler(httpx.Response(200, json={"status": "success"}), seen)
        )

        await client.invoke(RenameFolder(folder_id="f1", name="New"))

        timeout = seen[0].extensions["timeout"]
        assert all(value is None for value in timeout.values())

    @pytest.mark.asyncio
    async def test_missing_endpoint_raises_configuration_error_without_request(self) -> None:
        seen: list[httpx.Request] = []
        client = _make_client(
            _recording_handler(httpx.Response(200, json={"status": "success"}), seen),
            endpoint_url="",
        )

        with pytest.raises(ConfigurationError):
            await client.invoke(ListFolder(folder_id="x"))
        assert seen == []

    @pytest.mark.asyncio
    async def test_missing_root_raises_configuration_error(self) -> None:
        client = _make_client(
            _recording_handler(httpx.Response(200, json={"status": "success"}), []),
            root_folder_id="  ",
        )

        with pytest.raises(ConfigurationError, match="Root folder"):
            await client.invoke(ListFolder(folder_id="x"))

    @pytest.mark.asyncio
    async def test_html_response_is_protocol_error(self) -> None:
        client = _make_client(lambda request: _html())

        with pytest.raises(ProtocolError):
            await client.invoke(ListFolder(folder_id="x"))

    @pytest.mark.asyncio
    async def test_empty_html_response_is_protocol_error(self) -> None:
        client = _make_client(lambda request: _html(b""))

        with pytest.raises(ProtocolError):
            await client.invoke(ListFolder(folder_id="x"))

    @pytest.mark.asyncio
    async def test_html_error_status_is_still_protocol_error(self) -> None:
        client = _make_client(
            lambda request: httpx.Response(
                401, headers={"content-type": "text/html"}, content=b"<html></html>"
            )
        )

        with pytest.raises(ProtocolError):
            await client.invoke(ListFolder(folder_id="x"))

    @pytest.mark.asyncio
    async def test_non_json_body_is_protocol_error(self) -> None:
        client = _make_client(
            lambda request: httpx.Response(
                200, headers={"content-type": "text/plain"}, content=b"not json"
            )
        )

        with pytest.raises(ProtocolError):
            await client.invoke(ListFolder(folder_id="x"))

    @pytest.mark.asyncio
    async def test_json_array_is_protocol_error(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json=[1, 2]))

        with pytest.raises(ProtocolError):
            await client.invoke(ListFolder(folder_id="x"))

    @pytest.mark.asyncio
    async def test_connection_failure_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _make_client(handler)

        with pytest.raises(TransportError) as exc_info:
            await client.invoke(ListFolder(folder_id="x"))
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_rename_against_outdated_gateway_is_compatibility_error(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json={}))

        with pytest.raises(CompatibilityError):
            await client.rename_folder("f1", "Renamed")


# ---------------------------------------------------------------------------
# send() / timeout tests
# ---------------------------------------------------------------------------


class TestSend:
    @pytest.mark.asyncio
    async def test_send_targets_explicit_endpoint_without_root(self) -> None:
        seen: list[httpx.Request] = []
        client = _make_client(
            _recording_handler(httpx.Response(200, json={"status": "success", "version": "v1"}), seen),
            endpoint_url="",
            root_folder_id="",
        )

        body = await client.send("https://other.example.com/exec", CheckHealth())

        assert body["version"] == "v1"
        assert str(seen[0].url) == "https://other.example.com/exec"

    @pytest.mark.asyncio
    async def test_slow_gateway_times_out_as_transport_error(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200, json={"status": "success"})

        client = _make_client(handler)

        with pytest.raises(TransportError):
            await client.send(ENDPOINT, CheckHealth(), timeout=0.01)

    @pytest.mark.asyncio
    async def test_http_timeout_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = _make_client(handler)

        with pytest.raises(TransportError):
            await client.check_health(ENDPOINT, timeout=5.0)

    @pytest.mark.asyncio
    async def test_health_timeout_forwarded_to_request(self) -> None:
        seen: list[httpx.Request] = []
        client = _make_client(
            _recording_handler(
                httpx.Response(200, json={"status": "success", "version": "v1.1.0"}), seen
            )
        )

        version = await client.check_health(ENDPOINT, timeout=5.0)

        assert version == "v1.1.0"
        assert seen[0].extensions["timeout"]["read"] == 5.0


# ---------------------------------------------------------------------------
# Typed action tests
# ---------------------------------------------------------------------------


class TestTypedActions:
    @pytest.mark.asyncio
    async def test_list_folder_parses_entries(self) -> None:
        files = [
            {"id": "d1", "name": "Week 1", "mimeType": FOLDER_MIME_TYPE, "url": "u1", "size": 0},
            {"id": "f1", "name": "notes.pdf", "mimeType": "application/pdf", "url": "u2", "size": 42},
        ]
        client = _make_client(
            lambda request: httpx.Response(200, json={"status": "success", "files": files})
        )

        entries = await client.list_folder("root-1")

        assert [e.id for e in entries] == ["d1", "f1"]
        assert entries[0].is_folder
        assert not entries[1].is_folder
        assert entries[1].size == 42

    @pytest.mark.asyncio
    async def test_list_folder_without_files_is_compatibility_error(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json={"status": "success"}))

        with pytest.raises(CompatibilityError):
            await client.list_folder("root-1")

    @pytest.mark.asyncio
    async def test_ensure_folder_returns_id(self) -> None:
        seen: list[httpx.Request] = []
        client = _make_client(
            _recording_handler(httpx.Response(200, json={"status": "success", "id": "F1"}), seen)
        )

        folder_id = await client.ensure_folder("root-1", "student-42")

        assert folder_id == "F1"
        assert json.loads(seen[0].content) == {
            "action": "ensureFolder",
            "rootId": "root-1",
            "name": "student-42",
        }

    @pytest.mark.asyncio
    async def test_ensure_folder_without_id_is_compatibility_error(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json={"status": "success"}))

        with pytest.raises(CompatibilityError):
            await client.ensure_folder("root-1", "student-42")

    @pytest.mark.asyncio
    async def test_upload_sends_encoded_file(self) -> None:
        seen: list[httpx.Request] = []
        client = _make_client(
            _recording_handler(
                httpx.Response(200, json={"status": "success", "id": "new", "url": "u"}), seen
            )
        )
        data = base64.b64encode(b"hello").decode("ascii")
        encoded = EncodedPayload(filename="a.txt", mime_type="text/plain", data=data, size=5)

        body = await client.upload("folder-2", encoded)

        assert body["id"] == "new"
        assert json.loads(seen[0].content) == {
            "action": "upload",
            "folderId": "folder-2",
            "filename": "a.txt",
            "mimeType": "text/plain",
            "file": data,
        }

    @pytest.mark.asyncio
    async def test_create_folder_returns_optional_id(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json={"status": "success"}))

        assert await client.create_folder("root-1", "Reports") is None

    @pytest.mark.asyncio
    async def test_delete_surfaces_remote_error(self) -> None:
        client = _make_client(
            lambda request: httpx.Response(
                200, json={"status": "error", "message": "No item with the given ID"}
            )
        )

        with pytest.raises(RemoteError, match="No item with the given ID"):
            await client.delete("missing")

    @pytest.mark.asyncio
    async def test_list_folder_with_unreadable_entry_is_compatibility_error(self) -> None:
        files = [{"id": "f1", "name": "big.pdf", "mimeType": "application/pdf", "size": "1.5 MB"}]
        client = _make_client(
            lambda request: httpx.Response(200, json={"status": "success", "files": files})
        )

        with pytest.raises(CompatibilityError) as exc_info:
            await client.list_folder("root-1")

        assert exc_info.value.action == "list"
        assert isinstance(exc_info.value.__cause__, ValueError)


# ---------------------------------------------------------------------------
# Redirect tests
# ---------------------------------------------------------------------------


class TestRedirects:
    @pytest.mark.asyncio
    async def test_injected_default_client_follows_redirect_to_json(self) -> None:
        final_url = "https://content.example.com/echo?user_content_key=abc"

        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == ENDPOINT:
                return httpx.Response(
                    302,
                    headers={"location": final_url, "content-type": "text/html"},
                    content=b"<html><a href='moved'>Moved Temporarily</a></html>",
                )
            return httpx.Response(200, json={"status": "success", "files": []})

        store = ConfigStore(GatewayConfig(endpoint_url=ENDPOINT, root_folder_id="root-1"))
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = GatewayClient(store, http_client=http)

        assert await client.list_folder("root-1") == []
