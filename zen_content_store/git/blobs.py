"""
Blob creation for binary content.

The remote API has no batch endpoint for blobs, so a write with n binary
attachments costs n round trips. Those calls are independent of each other
and are issued concurrently, bounded by a semaphore. When one upload fails
or the write is cancelled, the remaining uploads are cancelled and awaited
before the error propagates.
"""

from __future__ import annotations

import asyncio
import logging

from ..config import DEFAULT_MAX_CONCURRENT_BLOBS, RepositoryRef
from .client import ObjectClient
from .progress import CallTracker
from .types import BinaryFileChange, BlobEncoding, GitObjectId

logger = logging.getLogger(__name__)


class BlobStore:
    """Promotes payloads to opaque blob references."""

    def __init__(
        self,
        client: ObjectClient,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_BLOBS,
    ) -> None:
        self.client = client
        self.max_concurrent = max(1, max_concurrent)

    async def create_blob(
        self,
        repo: RepositoryRef,
        payload: str,
        encoding: BlobEncoding = "base64",
    ) -> GitObjectId:
        """Create one blob and return its id."""
        return await self.client.create_blob(repo, payload, encoding)

    async def create_blobs(
        self,
        repo: RepositoryRef,
        changes: list[BinaryFileChange],
        tracker: CallTracker | None = None,
    ) -> dict[str, GitObjectId]:
        """Create a blob per binary change.

        Args:
            repo: Target repository
            changes: Binary changes to promote
            tracker: Optional progress/cancellation tracker

        Returns:
            Mapping of path to blob id, in the order of `changes`
        """
        if not changes:
            return {}

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def promote(change: BinaryFileChange) -> GitObjectId:
            async with semaphore:
                if tracker is not None:
                    tracker.checkpoint()
                sha = await self.create_blob(repo, change.content_base64, "base64")
                if tracker is not None:
                    tracker.advance()
                logger.debug(f"Created blob {sha} for {change.path}")
                return sha

        tasks = [asyncio.create_task(promote(change)) for change in changes]
        try:
            shas = await asyncio.gather(*tasks)
        except BaseException:
            # No upload may outlive the write that started it.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return {change.path: sha for change, sha in zip(changes, shas, strict=True)}
