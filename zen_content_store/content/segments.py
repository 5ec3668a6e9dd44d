"""
Content segment codec.

A stored document is markdown text with embedded file references. Each
reference is one canonical marker:

    <div data-zenfile data-uuid="…" data-name="…" data-mime="…" data-caption="…"></div>

`data-caption` is optional. Attribute values are escaped with exactly four
entities (``&amp; &quot; &lt; &gt;``). A value is canonical when it contains
no raw ``<``, ``>`` or ``"`` and every ``&`` starts one of those entities;
only canonical markers with non-empty uuid, name and mime are recognized.
Anything else, however close to a marker, is kept as literal text, so
parsing never fails and ``serialize_segments(parse_segments(d)) == d``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

MARKER_OPEN = "<div data-zenfile"
MARKER_CLOSE = "></div>"

# Attribute order is fixed; the last one is optional.
REQUIRED_ATTRIBUTES = ("uuid", "name", "mime")
OPTIONAL_ATTRIBUTES = ("caption",)

_ESCAPES = {
    "&": "&amp;",
    '"': "&quot;",
    "<": "&lt;",
    ">": "&gt;",
}
_ENTITIES = {entity: char for char, entity in _ESCAPES.items()}


@dataclass(frozen=True)
class ZenFileBlock:
    """One embedded attachment inside a document.

    `uuid` is the join key to the stored attachment (attachments/<uuid>),
    independent of the document's own path.
    """

    uuid: str
    name: str
    mime: str
    caption: str | None = None

    @property
    def label(self) -> str:
        """Text shown under the rendered attachment."""
        return self.caption or self.name

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"uuid": self.uuid, "name": self.name, "mime": self.mime}
        if self.caption is not None:
            data["caption"] = self.caption
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ZenFileBlock:
        return cls(
            uuid=data["uuid"],
            name=data["name"],
            mime=data["mime"],
            caption=data.get("caption"),
        )


@dataclass(frozen=True)
class TextSegment:
    """A contiguous run of plain markdown text."""

    text: str
    kind: Literal["text"] = field(default="text", init=False)


@dataclass(frozen=True)
class FileSegment:
    """An embedded file reference."""

    block: ZenFileBlock
    kind: Literal["file"] = field(default="file", init=False)


ContentSegment = TextSegment | FileSegment


def escape_attribute(value: str) -> str:
    """Escape ``& " < >`` for use inside a double-quoted attribute."""
    return "".join(_ESCAPES.get(char, char) for char in value)


def unescape_attribute(raw: str) -> str | None:
    """Decode a canonically escaped attribute value.

    Returns None when `raw` is not in canonical form, i.e. when escaping the
    decoded value would not give back `raw`.
    """
    out: list[str] = []
    pos = 0
    while pos < len(raw):
        char = raw[pos]
        if char in '<>"':
            return None
        if char != "&":
            out.append(char)
            pos += 1
            continue
        for entity, decoded in _ENTITIES.items():
            if raw.startswith(entity, pos):
                out.append(decoded)
                pos += len(entity)
                break
        else:
            return None
    return "".join(out)


def _read_attribute(document: str, pos: int, name: str) -> tuple[str, int] | None:
    prefix = f' data-{name}="'
    if not document.startswith(prefix, pos):
        return None
    value_start = pos + len(prefix)
    value_end = document.find('"', value_start)
    if value_end == -1:
        return None
    value = unescape_attribute(document[value_start:value_end])
    if value is None:
        return None
    return value, value_end + 1


def _read_marker(document: str, start: int) -> tuple[ZenFileBlock, int] | None:
    """Try to read one canonical marker at `start`.

    Returns the block and the index just past the marker, or None.
    """
    pos = start + len(MARKER_OPEN)
    values: dict[str, str] = {}

    for name in REQUIRED_ATTRIBUTES:
        read = _read_attribute(document, pos, name)
        if read is None:
            return None
        values[name], pos = read

    for name in OPTIONAL_ATTRIBUTES:
        read = _read_attribute(document, pos, name)
        if read is not None:
            values[name], pos = read

    if not document.startswith(MARKER_CLOSE, pos):
        return None
    if not all(values[name] for name in REQUIRED_ATTRIBUTES):
        return None

    block = ZenFileBlock(
        uuid=values["uuid"],
        name=values["name"],
        mime=values["mime"],
        caption=values.get("caption"),
    )
    return block, pos + len(MARKER_CLOSE)


def parse_segments(document: str) -> list[ContentSegment]:
    """Split a document into alternating text and file segments.

    Never raises on malformed markers; they stay part of the text. An empty
    document yields a single empty text segment.
    """
    segments: list[ContentSegment] = []
    text_start = 0
    search_from = 0

    while True:
        index = document.find(MARKER_OPEN, search_from)
        if index == -1:
            break
        marker = _read_marker(document, index)
        if marker is None:
            search_from = index + 1
            continue

        block, end = marker
        if index > text_start:
            segments.append(TextSegment(document[text_start:index]))
        segments.append(FileSegment(block))
        text_start = search_from = end

    tail = document[text_start:]
    if tail or not segments:
        segments.append(TextSegment(tail))
    return segments


def serialize_block(block: ZenFileBlock) -> str:
    """Render one block as its canonical marker."""
    parts = [MARKER_OPEN]
    parts.append(f' data-uuid="{escape_attribute(block.uuid)}"')
    parts.append(f' data-name="{escape_attribute(block.name)}"')
    parts.append(f' data-mime="{escape_attribute(block.mime)}"')
    if block.caption is not None:
        parts.append(f' data-caption="{escape_attribute(block.caption)}"')
    parts.append(MARKER_CLOSE)
    return "".join(parts)


def serialize_segments(segments: list[ContentSegment]) -> str:
    """Join segments back into the stored document text."""
    parts: list[str] = []
    for segment in segments:
        match segment:
            case TextSegment(text=text):
                parts.append(text)
            case FileSegment(block=block):
                parts.append(serialize_block(block))
            case _:
                raise TypeError(f"Unknown segment type: {type(segment).__name__}")
    return "".join(parts)


def file_blocks(segments: list[ContentSegment]) -> list[ZenFileBlock]:
    """Embedded blocks in document order."""
    return [segment.block for segment in segments if isinstance(segment, FileSegment)]
