"""
Value types for the Git object-graph pipeline.

Object ids are opaque hashes handed out by the remote; they are never
computed locally.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Literal, NewType

GitObjectId = NewType("GitObjectId", str)

FILE_MODE = "100644"  # regular, non-executable file
BLOB_TYPE = "blob"

BlobEncoding = Literal["utf-8", "base64"]


@dataclass(frozen=True)
class FileChange:
    """A logical write of a text file."""

    path: str
    content: str


@dataclass(frozen=True)
class BinaryFileChange:
    """A logical write of a binary file, as a base64 payload.

    Must be promoted to a blob before it can enter a tree.
    """

    path: str
    content_base64: str = field(repr=False)

    @classmethod
    def from_bytes(cls, path: str, data: bytes) -> BinaryFileChange:
        return cls(path=path, content_base64=base64.b64encode(data).decode("ascii"))

    @property
    def size_bytes(self) -> int:
        return len(base64.b64decode(self.content_base64))


@dataclass(frozen=True)
class TreeEntry:
    """One path in a tree delta: inline text content or a blob reference."""

    path: str
    content: str | None = None
    sha: GitObjectId | None = None
    mode: str = FILE_MODE
    type: str = BLOB_TYPE

    def __post_init__(self) -> None:
        if (self.content is None) == (self.sha is None):
            raise ValueError(f"Tree entry {self.path} needs exactly one of content or sha")

    def to_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {"path": self.path, "mode": self.mode, "type": self.type}
        if self.sha is not None:
            entry["sha"] = self.sha
        else:
            entry["content"] = self.content
        return entry


@dataclass
class CommitResult:
    """Outcome of a successful commit chain.

    Attributes:
        commit_sha: New branch tip
        tree_sha: Tree referenced by the new commit
        parent_sha: Tip the commit was parented on
        branch: Branch that was fast-forwarded
        bootstrapped: Whether the branch had to be created first
        blob_shas: Blob id per binary path
    """

    commit_sha: GitObjectId
    tree_sha: GitObjectId
    parent_sha: GitObjectId
    branch: str
    bootstrapped: bool = False
    blob_shas: dict[str, GitObjectId] = field(default_factory=dict)
