"""
Zen Content Store

Git-backed content store for a blog editor. A branch of a hosted Git
repository is the document store; writes go through the remote Git Data API.

Provides:
- Atomic multi-file writes (blob -> tree -> commit -> fast-forward ref)
- Automatic creation of the data branch from a root commit
- A codec for file references embedded in markdown documents
- A blog facade for posts, attachments, profile and public config

Usage:

    >>> from zen_content_store import ContentStore, StoreConfig, Post
    >>> async with ContentStore(StoreConfig.from_env()) as store:
    ...     saved = await store.save_post(Post(id="abc", title="Hello"), "# Hello")
    ...     segments = await store.load_document(saved.post)
"""

from .config import RepositoryRef, StoreConfig

# Content codec
from .content import (
    ContentSegment,
    FileSegment,
    TextSegment,
    ZenFileBlock,
    attachment_path,
    load_attachment,
    new_file_block,
    parse_segments,
    resolve_attachment_url,
    serialize_segments,
)

# Exceptions
from .exceptions import (
    AuthenticationError,
    ConflictError,
    ContentStoreError,
    NotFoundError,
    RemoteError,
    StorageConnectionError,
    ValidationError,
    WriteCancelledError,
)

# Git pipeline
from .git import (
    BinaryFileChange,
    BlobStore,
    ChainState,
    CommitChain,
    CommitRequest,
    CommitResult,
    FileChange,
    GitObjectId,
    ObjectClient,
    TreeComposer,
    TreeEntry,
)
from .logging_utils import configure_structured_logging
from .models import FileAuthor, Post, StoredFile
from .store import ContentStore, SavedPost

__all__ = [
    # Configuration
    "RepositoryRef",
    "StoreConfig",
    # Store facade
    "ContentStore",
    "SavedPost",
    "Post",
    "FileAuthor",
    "StoredFile",
    # Git pipeline
    "ObjectClient",
    "BlobStore",
    "TreeComposer",
    "CommitChain",
    "CommitRequest",
    "CommitResult",
    "ChainState",
    "GitObjectId",
    "FileChange",
    "BinaryFileChange",
    "TreeEntry",
    # Content
    "ZenFileBlock",
    "TextSegment",
    "FileSegment",
    "ContentSegment",
    "parse_segments",
    "serialize_segments",
    "attachment_path",
    "resolve_attachment_url",
    "new_file_block",
    "load_attachment",
    # Logging
    "configure_structured_logging",
    # Exceptions
    "ContentStoreError",
    "AuthenticationError",
    "NotFoundError",
    "ConflictError",
    "RemoteError",
    "StorageConnectionError",
    "ValidationError",
    "WriteCancelledError",
]

__version__ = "0.1.0"
