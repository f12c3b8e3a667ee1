"""Data models for gateway entries, breadcrumb levels and acting identities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Reserved mimeType the gateway uses to mark folders
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Gateway JSON field names
FIELD_ACTION = "action"
FIELD_STATUS = "status"
FIELD_MESSAGE = "message"
FIELD_FILES = "files"
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_MIME_TYPE = "mimeType"
FIELD_URL = "url"
FIELD_SIZE = "size"
FIELD_VERSION = "version"

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class RemoteEntry:
    """A file or folder returned by a gateway listing."""

    id: str
    name: str
    mime_type: str
    url: str = ""
    size: int = 0

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> RemoteEntry:
        """Map a raw listing item to a RemoteEntry."""
        return cls(
            id=str(raw.get(FIELD_ID, "")),
            name=str(raw.get(FIELD_NAME, "")),
            mime_type=str(raw.get(FIELD_MIME_TYPE, "")),
            url=str(raw.get(FIELD_URL) or ""),
            size=int(raw.get(FIELD_SIZE) or 0),
        )


@dataclass(frozen=True)
class FolderStackEntry:
    """One level of breadcrumb history below the sandbox root."""

    id: str
    name: str


@dataclass
class Identity:
    """The acting user.

    ``personal_root_id`` is filled in lazily by the sandbox resolver for
    non-privileged roles.
    """

    id: str
    role: str
    personal_root_id: str | None = None
