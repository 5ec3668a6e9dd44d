"""
Attachment paths, URLs and local file loading.

Attachments live at a path derived from the block uuid, not from the owning
document, so documents can share an attachment and move without breaking it.
"""

from __future__ import annotations

import mimetypes
import uuid
from pathlib import Path
from typing import Literal

import aiofiles

from ..config import DEFAULT_RAW_BASE, RepositoryRef
from ..exceptions import ValidationError
from ..git.types import BinaryFileChange
from .segments import ZenFileBlock

ATTACHMENTS_DIR = "attachments"
DEFAULT_MIME = "application/octet-stream"

MimeCategory = Literal["image", "audio", "video", "txt", "pdf", "other"]


def attachment_path(block_uuid: str) -> str:
    """Storage path of an attachment in the data branch."""
    if not block_uuid or "/" in block_uuid:
        raise ValidationError("uuid", "attachment uuid must be a non-empty path segment", block_uuid)
    return f"{ATTACHMENTS_DIR}/{block_uuid}"


def raw_file_url(repo: RepositoryRef, path: str, raw_base: str = DEFAULT_RAW_BASE) -> str:
    """Direct download URL for a file of a public repository."""
    return (
        f"{raw_base.rstrip('/')}/{repo.owner}/{repo.repository_name}/"
        f"{repo.branch_name}/{path}"
    )


def resolve_attachment_url(
    repo: RepositoryRef, block: ZenFileBlock, raw_base: str = DEFAULT_RAW_BASE
) -> str:
    return raw_file_url(repo, attachment_path(block.uuid), raw_base)


def mime_category(mime: str) -> MimeCategory:
    """Coarse rendering category for a MIME type."""
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("audio/"):
        return "audio"
    if mime.startswith("video/"):
        return "video"
    if mime == "text/plain":
        return "txt"
    if mime == "application/pdf":
        return "pdf"
    return "other"


def new_file_block(name: str, mime: str | None = None, caption: str | None = None) -> ZenFileBlock:
    """Create a block with a fresh uuid; the MIME type is guessed from `name` if absent."""
    if not name:
        raise ValidationError("name", "attachment name is required")
    if not mime:
        mime = mimetypes.guess_type(name)[0] or DEFAULT_MIME
    return ZenFileBlock(uuid=str(uuid.uuid4()), name=name, mime=mime, caption=caption)


def attachment_change(block: ZenFileBlock, data: bytes) -> BinaryFileChange:
    """Binary write that stores `data` at the block's attachment path."""
    return BinaryFileChange.from_bytes(attachment_path(block.uuid), data)


async def load_attachment(
    file_path: Path,
    name: str | None = None,
    mime: str | None = None,
    caption: str | None = None,
) -> tuple[ZenFileBlock, BinaryFileChange]:
    """Read a local file and prepare it for embedding.

    Args:
        file_path: File to attach
        name: Display name (default: the file name)
        mime: MIME type (default: guessed from the name)
        caption: Optional caption

    Returns:
        The block to embed in the document and the matching binary change
    """
    async with aiofiles.open(file_path, "rb") as f:
        data = await f.read()
    block = new_file_block(name or file_path.name, mime, caption)
    return block, attachment_change(block, data)
