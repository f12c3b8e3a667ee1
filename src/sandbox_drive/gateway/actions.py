"""Gateway actions, one frozen dataclass per request shape."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Union

from sandbox_drive.gateway.models import FIELD_ACTION


@dataclass(frozen=True)
class ListFolder:
    ACTION: ClassVar[str] = "list"

    folder_id: str

    def to_payload(self) -> dict[str, Any]:
        return {FIELD_ACTION: self.ACTION, "folderId": self.folder_id}


@dataclass(frozen=True)
class UploadFile:
    """Whole-file upload; ``data`` is the base64-encoded content."""

    ACTION: ClassVar[str] = "upload"

    folder_id: str
    filename: str
    mime_type: str
    data: str

    def to_payload(self) -> dict[str, Any]:
        return {
            FIELD_ACTION: self.ACTION,
            "folderId": self.folder_id,
            "filename": self.filename,
            "mimeType": self.mime_type,
            "file": self.data,
        }

    def __repr__(self) -> str:
        # Keep multi-megabyte payloads out of logs and tracebacks.
        return (
            f"UploadFile(folder_id={self.folder_id!r}, filename={self.filename!r}, "
            f"mime_type={self.mime_type!r}, data=<{len(self.data)} chars>)"
        )


@dataclass(frozen=True)
class CreateFolder:
    ACTION: ClassVar[str] = "createFolder"

    folder_id: str
    name: str

    def to_payload(self) -> dict[str, Any]:
        return {FIELD_ACTION: self.ACTION, "folderId": self.folder_id, "name": self.name}


@dataclass(frozen=True)
class EnsureFolder:
    """Idempotent create-or-fetch of a named child of ``root_id``."""

    ACTION: ClassVar[str] = "ensureFolder"

    root_id: str
    name: str

    def to_payload(self) -> dict[str, Any]:
        return {FIELD_ACTION: self.ACTION, "rootId": self.root_id, "name": self.name}


@dataclass(frozen=True)
class RenameFolder:
    ACTION: ClassVar[str] = "renameFolder"

    folder_id: str
    name: str

    def to_payload(self) -> dict[str, Any]:
        return {FIELD_ACTION: self.ACTION, "id": self.folder_id, "name": self.name}


@dataclass(frozen=True)
class DeleteEntry:
    """Delete a file or folder; recursive folder removal is up to the gateway."""

    ACTION: ClassVar[str] = "delete"

    entry_id: str

    def to_payload(self) -> dict[str, Any]:
        return {FIELD_ACTION: self.ACTION, "id": self.entry_id}


@dataclass(frozen=True)
class CheckHealth:
    ACTION: ClassVar[str] = "check_health"

    def to_payload(self) -> dict[str, Any]:
        return {FIELD_ACTION: self.ACTION}


GatewayAction = Union[
    ListFolder, UploadFile, CreateFolder, EnsureFolder, RenameFolder, DeleteEntry, CheckHealth
]
