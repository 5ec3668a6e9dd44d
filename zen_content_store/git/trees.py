"""
Tree composition over a base tree.

Only changed paths are sent; the remote merges them onto `base_tree`, so
every unchanged path keeps pointing at the base tree's existing objects.
"""

from __future__ import annotations

from ..config import RepositoryRef
from .client import ObjectClient
from .types import FileChange, GitObjectId, TreeEntry

PLACEHOLDER_PATH = ".gitkeep"
PLACEHOLDER_CONTENT = "ZenBlog Data Branch"


def entries_for(
    text_changes: list[FileChange],
    blob_ids: dict[str, GitObjectId],
) -> list[TreeEntry]:
    """Build the tree delta: inline text entries, then blob references."""
    entries = [TreeEntry(path=change.path, content=change.content) for change in text_changes]
    entries.extend(TreeEntry(path=path, sha=sha) for path, sha in blob_ids.items())
    return entries


class TreeComposer:
    """Creates tree objects through the object client."""

    def __init__(self, client: ObjectClient) -> None:
        self.client = client

    async def compose(
        self,
        repo: RepositoryRef,
        base_tree: GitObjectId,
        entries: list[TreeEntry],
    ) -> GitObjectId:
        """Create a tree that applies `entries` on top of `base_tree`."""
        return await self.client.create_tree(repo, entries, base_tree=base_tree)

    async def compose_root(self, repo: RepositoryRef) -> GitObjectId:
        """Create a standalone tree holding only the placeholder file."""
        placeholder = TreeEntry(path=PLACEHOLDER_PATH, content=PLACEHOLDER_CONTENT)
        return await self.client.create_tree(repo, [placeholder])
