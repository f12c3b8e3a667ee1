"""Upload payload preparation — size check, full read, base64 encoding."""

from __future__ import annotations

import base64
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from sandbox_drive.config import DEFAULT_MAX_UPLOAD_BYTES
from sandbox_drive.gateway.errors import SizeError

if TYPE_CHECKING:
    from sandbox_drive.config import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class EncodedPayload:
    """A whole file encoded for embedding in one JSON request.

    Attributes:
        filename: Name the file will get in the target folder.
        mime_type: MIME type sent alongside the content.
        data: Base64-encoded file content (ASCII).
        size: Size of the raw content in bytes.
    """

    filename: str
    mime_type: str
    data: str
    size: int

    def __repr__(self) -> str:
        return (
            f"EncodedPayload(filename={self.filename!r}, mime_type={self.mime_type!r}, "
            f"size={self.size})"
        )


def guess_mime_type(filename: str) -> str:
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or DEFAULT_MIME_TYPE


class UploadEncoder:
    """Turns local files into size-checked, fully buffered upload payloads."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
        """Initialise the encoder.

        Args:
            max_bytes: Largest accepted file size in bytes.
        """
        if max_bytes <= 0:
            raise ValueError("max_bytes must be positive")
        self._max_bytes = max_bytes

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def prepare(self, path: str | Path) -> EncodedPayload:
        """Read and encode a file from disk.

        The size is checked from the file metadata before any byte is read.

        Args:
            path: Path of the file to upload.

        Returns:
            EncodedPayload for the file.

        Raises:
            SizeError: If the file is larger than the configured limit.
            OSError: If the file cannot be read.
        """
        file_path = Path(path)
        size = file_path.stat().st_size
        self._check_size(file_path.name, size)
        content = file_path.read_bytes()
        return self._encode(file_path.name, content, guess_mime_type(file_path.name))

    def prepare_bytes(
        self, filename: str, content: bytes, mime_type: str | None = None
    ) -> EncodedPayload:
        """Encode content already held in memory (e.g. a form upload).

        Raises:
            SizeError: If the content is larger than the configured limit.
        """
        self._check_size(filename, len(content))
        return self._encode(filename, content, mime_type or guess_mime_type(filename))

    def _check_size(self, filename: str, size: int) -> None:
        if size > self._max_bytes:
            logger.warning(
                "[upload_encoder] rejected oversize file; filename:%s;size:%d;limit:%d",
                filename,
                size,
                self._max_bytes,
            )
            raise SizeError(filename, size, self._max_bytes)

    @staticmethod
    def _encode(filename: str, content: bytes, mime_type: str) -> EncodedPayload:
        return EncodedPayload(
            filename=filename,
            mime_type=mime_type,
            data=base64.b64encode(content).decode("ascii"),
            size=len(content),
        )


def upload_encoder_from_config(config: AppConfig) -> UploadEncoder:
    """Construct an UploadEncoder from application configuration."""
    return UploadEncoder(max_bytes=config.max_upload_bytes)
