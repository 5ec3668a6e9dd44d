"""
Blog content store backed by a Git branch.

This is the interface the editor and reader screens call. Writes that must
land together (post body, post index, attachments) go through one commit
chain; single-file reads and the best-effort cleanup delete use the
contents API directly.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from dataclasses import dataclass, replace
from typing import Any

from .config import RepositoryRef, StoreConfig
from .content.attachments import resolve_attachment_url
from .content.segments import ContentSegment, ZenFileBlock, parse_segments
from .exceptions import ContentStoreError, NotFoundError, ValidationError
from .git.client import ObjectClient
from .git.commits import CommitChain, CommitRequest
from .git.progress import ProgressCallback
from .git.types import BinaryFileChange, CommitResult, FileChange
from .models import FileAuthor, Post, StoredFile, default_excerpt, new_post_id

logger = logging.getLogger(__name__)

POSTS_INDEX_PATH = "data/posts.json"
PROFILE_PATH = "data/profile.json"
PUBLIC_CONFIG_PATH = "data/config.json"
DEFAULT_AVATAR_URL = "https://t.alcy.cc/tx"


@dataclass
class SavedPost:
    """Outcome of saving a post."""

    post: Post
    posts: list[Post]
    commit: CommitResult


def _dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


class ContentStore:
    """Reads and atomically writes blog content in the data branch.

    Example:
        >>> async with ContentStore(StoreConfig.from_env()) as store:
        ...     posts = await store.load_posts()
        ...     segments = await store.load_document(posts[0])
    """

    def __init__(self, config: StoreConfig, client: ObjectClient | None = None):
        """Initialize the store.

        Args:
            config: Repository configuration
            client: Optional object client (default: one built from config)
        """
        self.config = config
        self.client = client or ObjectClient(api_base=config.api_base, timeout=config.timeout)
        self.chain = CommitChain(
            self.client,
            bootstrap_branch=config.bootstrap_branch,
            max_concurrent_blobs=config.max_concurrent_blobs,
        )

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> ContentStore:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def repo(self) -> RepositoryRef:
        return self.config.repository_ref()

    # =========================================================================
    # Single-file operations
    # =========================================================================

    async def get_file(self, path: str) -> StoredFile:
        """Read one file and its blob sha from the data branch.

        Raises:
            NotFoundError: If the branch or path does not exist
            ValidationError: If the path is a directory or too large for the API
        """
        data = await self.client.get_contents(self.repo, path)
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise ValidationError("path", "not a file", path)
        if data.get("encoding") != "base64":
            raise ValidationError("path", "file content not returned inline", path)
        raw = base64.b64decode(data.get("content", ""))
        return StoredFile(path=path, sha=data["sha"], raw=raw)

    async def get_file_bytes(self, path: str) -> bytes:
        return (await self.get_file(path)).raw

    async def get_file_author(self, path: str) -> FileAuthor | None:
        """Last writer of `path`, or None when it has no history."""
        commits = await self.client.list_commits(self.repo, path, per_page=1)
        if not commits:
            return None

        commit = commits[0]
        name = commit["commit"]["author"]["name"]
        account = commit.get("author") or {}
        return FileAuthor(
            name=name,
            avatar=account.get("avatar_url") or DEFAULT_AVATAR_URL,
            username=account.get("login") or name,
        )

    async def delete_file(self, path: str, message: str, sha: str) -> None:
        """Delete one file outside the atomic chain."""
        repo = self.repo
        ObjectClient.require_credential(repo, "delete")
        await self.client.delete_contents(repo, path, message, sha)
        logger.info(f"Deleted {path} from {repo.slug}@{repo.branch_name}")

    # =========================================================================
    # Atomic writes
    # =========================================================================

    async def commit_files(
        self,
        message: str,
        text_changes: list[FileChange] | None = None,
        binary_changes: list[BinaryFileChange] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> CommitResult:
        """Write all changes to the data branch as one commit."""
        repo = self.repo
        request = CommitRequest(
            branch=repo.branch_name,
            message=message,
            text_changes=list(text_changes or []),
            binary_changes=list(binary_changes or []),
        )
        return await self.chain.commit(
            repo, request, on_progress=on_progress, cancel_event=cancel_event
        )

    # =========================================================================
    # Blog documents
    # =========================================================================

    async def _load_json(self, path: str, default: Any) -> Any:
        # A fresh blog has no data branch or file yet.
        try:
            stored = await self.get_file(path)
        except NotFoundError:
            return default
        return json.loads(stored.content)

    async def load_posts(self) -> list[Post]:
        data = await self._load_json(POSTS_INDEX_PATH, [])
        return [Post.from_dict(item) for item in data]

    async def load_profile(self) -> dict[str, Any]:
        return await self._load_json(PROFILE_PATH, {})

    async def load_public_config(self) -> dict[str, Any]:
        return await self._load_json(PUBLIC_CONFIG_PATH, {})

    async def load_document(self, post: Post) -> list[ContentSegment]:
        """Read a post body and split it into renderable segments."""
        stored = await self.get_file(post.content_path)
        return parse_segments(stored.content)

    def attachment_url(self, block: ZenFileBlock) -> str:
        return resolve_attachment_url(self.repo, block, self.config.raw_base)

    async def save_post(
        self,
        post: Post,
        content: str,
        attachments: list[BinaryFileChange] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> SavedPost:
        """Write a post body, the updated index and its attachments together.

        An existing index entry is replaced in place and keeps its date; a new
        post is prepended. A post without an id gets a fresh one.
        """
        if not post.title or not content:
            raise ValidationError("post", "title and content are required")
        if not post.id:
            post = replace(post, id=new_post_id(), content_path="")

        posts = await self.load_posts()
        position = next((i for i, p in enumerate(posts) if p.id == post.id), None)

        saved = replace(post, excerpt=post.excerpt or default_excerpt(content))
        if position is not None:
            saved = replace(saved, date=posts[position].date)
            posts[position] = saved
        else:
            posts.insert(0, saved)

        text_changes = [
            FileChange(saved.content_path, content),
            FileChange(POSTS_INDEX_PATH, _dump_json([p.to_dict() for p in posts])),
        ]
        result = await self.commit_files(
            f"Post: {saved.title}",
            text_changes,
            attachments,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )
        return SavedPost(post=saved, posts=posts, commit=result)

    async def delete_post(self, post_id: str) -> list[Post]:
        """Drop a post from the index, then try to remove its body.

        The index update is the atomic write. Removing the body afterwards is
        cleanup only; its failure is logged and otherwise ignored.

        Returns:
            The remaining posts
        """
        posts = await self.load_posts()
        post = next((p for p in posts if p.id == post_id), None)
        if post is None:
            raise NotFoundError(f"post {post_id}")

        remaining = [p for p in posts if p.id != post_id]
        await self.commit_files(
            f"Remove post: {post_id}",
            [FileChange(POSTS_INDEX_PATH, _dump_json([p.to_dict() for p in remaining]))],
        )

        try:
            stored = await self.get_file(post.content_path)
            await self.delete_file(post.content_path, f"Cleanup {post_id}", stored.sha)
        except ContentStoreError as e:
            logger.warning(f"Cleanup of {post.content_path} failed: {e}")

        return remaining

    async def save_profile(self, profile: dict[str, Any]) -> CommitResult:
        return await self.commit_files(
            "Update profile", [FileChange(PROFILE_PATH, _dump_json(profile))]
        )

    async def sync_public_config(self) -> CommitResult:
        """Publish the token-free repository settings for anonymous readers."""
        return await self.commit_files(
            "Sync config",
            [FileChange(PUBLIC_CONFIG_PATH, _dump_json(self.config.public_config()))],
        )
