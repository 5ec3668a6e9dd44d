"""
Git object-graph pipeline over the hosting REST API.

Blobs, trees and commits are created remotely; a branch ref is the only
mutable primitive and is advanced with fast-forward-only updates.
"""

from .blobs import BlobStore
from .client import ObjectClient
from .commits import ChainState, CommitChain, CommitRequest
from .progress import CallTracker, ProgressCallback
from .trees import PLACEHOLDER_CONTENT, PLACEHOLDER_PATH, TreeComposer, entries_for
from .types import (
    BinaryFileChange,
    CommitResult,
    FileChange,
    GitObjectId,
    TreeEntry,
)

__all__ = [
    "ObjectClient",
    "BlobStore",
    "TreeComposer",
    "entries_for",
    "PLACEHOLDER_PATH",
    "PLACEHOLDER_CONTENT",
    "CommitChain",
    "CommitRequest",
    "ChainState",
    "CallTracker",
    "ProgressCallback",
    "GitObjectId",
    "FileChange",
    "BinaryFileChange",
    "TreeEntry",
    "CommitResult",
]
