"""
Document content: embedded file markers and attachment locations.
"""

from .attachments import (
    ATTACHMENTS_DIR,
    attachment_change,
    attachment_path,
    load_attachment,
    mime_category,
    new_file_block,
    raw_file_url,
    resolve_attachment_url,
)
from .segments import (
    ContentSegment,
    FileSegment,
    TextSegment,
    ZenFileBlock,
    escape_attribute,
    file_blocks,
    parse_segments,
    serialize_block,
    serialize_segments,
    unescape_attribute,
)

__all__ = [
    # Codec
    "ZenFileBlock",
    "TextSegment",
    "FileSegment",
    "ContentSegment",
    "parse_segments",
    "serialize_segments",
    "serialize_block",
    "escape_attribute",
    "unescape_attribute",
    "file_blocks",
    # Attachments
    "ATTACHMENTS_DIR",
    "attachment_path",
    "attachment_change",
    "raw_file_url",
    "resolve_attachment_url",
    "mime_category",
    "new_file_block",
    "load_attachment",
]
