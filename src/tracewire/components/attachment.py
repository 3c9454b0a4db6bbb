"""File, in-memory data and URL attachments.

Attachments are committed as ``upload-attachment`` entries. The writer
enriches them with :func:`populate_attachment_fields`, uploads the bytes on
flush and then records an ``add-attachment`` entry that carries only the
metadata.
"""

from __future__ import annotations

import mimetypes
import os
from collections.abc import Mapping
from pathlib import PurePosixPath
from typing import Annotated, Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from tracewire.diagnostics import get_logger
from tracewire.utils import unique_id

log = get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

_MAGIC_NUMBERS: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF8", "image/gif"),
    (b"%PDF", "application/pdf"),
    (b"PK\x03\x04", "application/zip"),
)


class _AttachmentBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=unique_id)
    name: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")
    size: int | None = None
    tags: dict[str, str] | None = None
    metadata: dict[str, str] | None = None

    def to_payload(self) -> dict[str, Any]:
        """Commit payload with camelCase keys; unset fields are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


class FileAttachment(_AttachmentBase):
    """Attachment read from a local file at flush time."""

    type: Literal["file"] = "file"
    path: str


class FileDataAttachment(_AttachmentBase):
    """Attachment whose bytes are already in memory."""

    type: Literal["fileData"] = "fileData"
    data: bytes


class UrlAttachment(_AttachmentBase):
    """Attachment that references a remote URL; nothing is uploaded."""

    type: Literal["url"] = "url"
    url: str


AnyAttachment = FileAttachment | FileDataAttachment | UrlAttachment
Attachment = Annotated[AnyAttachment, Field(discriminator="type")]
AttachmentInput = AnyAttachment | Mapping[str, Any]

_ATTACHMENT_ADAPTER: TypeAdapter[Any] = TypeAdapter(Attachment)


def coerce_attachment(attachment: AttachmentInput) -> AnyAttachment:
    """Accept a model instance or a ``{"type": ...}`` mapping.

    Mapping keys may use the wire names (``mimeType``) or field names.

    Raises:
        pydantic.ValidationError: If a mapping does not describe a known type.
    """
    if isinstance(attachment, (FileAttachment, FileDataAttachment, UrlAttachment)):
        return attachment
    return _ATTACHMENT_ADAPTER.validate_python(dict(attachment))


def sniff_mime_type(data: bytes) -> str:
    """Guess a MIME type from leading magic bytes, then from text content."""
    for magic, mime in _MAGIC_NUMBERS:
        if data.startswith(magic):
            return mime
    try:
        text = data[:1024].decode("utf-8")
    except UnicodeDecodeError:
        return DEFAULT_MIME_TYPE
    stripped = text.lstrip()
    if stripped.startswith(("{", "[")):
        return "application/json"
    if stripped[:15].lower().startswith(("<!doctype html", "<html")):
        return "text/html"
    if text and all(ch.isprintable() or ch in "\r\n\t" for ch in text):
        return "text/plain"
    return DEFAULT_MIME_TYPE


def populate_attachment_fields(attachment: AnyAttachment) -> AnyAttachment:
    """Fill in missing ``name``, ``mime_type`` and ``size`` in place.

    Best effort: a missing file or an unparsable URL leaves the fields unset.
    Returns the same object for chaining.
    """
    try:
        if isinstance(attachment, FileAttachment):
            if attachment.name is None:
                attachment.name = os.path.basename(attachment.path)
            if attachment.mime_type is None:
                attachment.mime_type = mimetypes.guess_type(attachment.path)[0] or DEFAULT_MIME_TYPE
            if attachment.size is None:
                attachment.size = os.path.getsize(attachment.path)
        elif isinstance(attachment, FileDataAttachment):
            if attachment.size is None:
                attachment.size = len(attachment.data)
            if attachment.mime_type is None:
                attachment.mime_type = sniff_mime_type(attachment.data)
        else:
            parsed = urlparse(attachment.url)
            if attachment.name is None:
                attachment.name = PurePosixPath(parsed.path).name or parsed.hostname or None
            if attachment.mime_type is None:
                attachment.mime_type = mimetypes.guess_type(parsed.path)[0]
    except (OSError, ValueError) as e:
        log.debug("attachment_populate_failed", attachment_id=attachment.id, error=str(e))
    return attachment


def read_attachment_bytes(attachment: FileAttachment | FileDataAttachment) -> bytes:
    """Raw bytes to upload.

    Raises:
        OSError: If a file attachment cannot be read.
    """
    if isinstance(attachment, FileDataAttachment):
        return attachment.data
    with open(attachment.path, "rb") as f:
        return f.read()
