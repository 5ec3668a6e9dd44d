"""
Atomic multi-file writes against a branch.

The chain turns independent object-creation calls into one logical write:

    RESOLVING -> COMPOSING -> COMMITTING -> UPDATING_REF -> DONE
        |   ^
        v   |
    BOOTSTRAPPING (at most once, only for the configured bootstrap branch)

An error in any state moves the chain to FAILED and propagates.

Every path of the write becomes visible at once when the non-forced ref
update succeeds. If the ref moved in the meantime the update is rejected,
the write fails with `ConflictError`, and the objects created so far are
left unreferenced on the remote. The loser is not replayed automatically.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from ..config import DEFAULT_BRANCH, DEFAULT_MAX_CONCURRENT_BLOBS, RepositoryRef
from ..exceptions import ConflictError, NotFoundError, RemoteError, ValidationError
from ..logging_utils import StoreLoggerAdapter
from .blobs import BlobStore
from .client import ObjectClient
from .progress import CallTracker, ProgressCallback
from .trees import TreeComposer, entries_for
from .types import BinaryFileChange, CommitResult, FileChange, GitObjectId

logger = logging.getLogger(__name__)

BOOTSTRAP_COMMIT_MESSAGE = "Initialize data branch"

# Status codes the remote uses to reject a ref write that is not a fast-forward
# (or a ref creation that lost a race).
REF_REJECTION_STATUSES = (409, 422)

# ref + commit + tree + commit + ref update
FIXED_CALLS = 5
BOOTSTRAP_CALLS = 3


class ChainState(Enum):
    """States of one commit chain invocation."""

    RESOLVING = "resolving"
    BOOTSTRAPPING = "bootstrapping"
    COMPOSING = "composing"
    COMMITTING = "committing"
    UPDATING_REF = "updating_ref"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CommitRequest:
    """One logical write: all changes land together or not at all."""

    branch: str
    message: str
    text_changes: list[FileChange] = field(default_factory=list)
    binary_changes: list[BinaryFileChange] = field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [c.path for c in self.text_changes] + [c.path for c in self.binary_changes]

    def validate(self) -> None:
        if not self.branch:
            raise ValidationError("branch", "branch name is required")
        if not self.message:
            raise ValidationError("message", "commit message is required")
        if not self.paths:
            raise ValidationError("changes", "a write needs at least one file change")

        seen: set[str] = set()
        for path in self.paths:
            if not path or path.startswith("/") or path.endswith("/"):
                raise ValidationError("path", "must be a relative file path", path)
            if path in seen:
                raise ValidationError("path", "path appears more than once in one write", path)
            seen.add(path)


@dataclass
class _ChainContext:
    """Values produced by earlier states and consumed by later ones."""

    tip: GitObjectId | None = None
    base_tree: GitObjectId | None = None
    tree: GitObjectId | None = None
    commit: GitObjectId | None = None
    blob_shas: dict[str, GitObjectId] = field(default_factory=dict)
    bootstrapped: bool = False

    def require(self, name: str) -> GitObjectId:
        """Value set by an earlier state; missing means the states ran out of order."""
        value = getattr(self, name)
        if value is None:
            raise RuntimeError(f"commit chain has no {name} yet")
        return value


class CommitChain:
    """Runs the blob -> tree -> commit -> ref pipeline for one branch write.

    Example:
        >>> chain = CommitChain(client)
        >>> result = await chain.commit(
        ...     repo,
        ...     CommitRequest(
        ...         branch="data",
        ...         message="Post: Hello",
        ...         text_changes=[FileChange("posts/abc.md", "# Hello")],
        ...     ),
        ... )
        >>> result.commit_sha
    """

    def __init__(
        self,
        client: ObjectClient,
        bootstrap_branch: str | None = DEFAULT_BRANCH,
        max_concurrent_blobs: int = DEFAULT_MAX_CONCURRENT_BLOBS,
    ) -> None:
        """Initialize the chain.

        Args:
            client: Object client used for every remote call
            bootstrap_branch: Branch that may be auto-created when missing;
                None disables bootstrapping
            max_concurrent_blobs: Parallelism bound for blob uploads
        """
        self.client = client
        self.bootstrap_branch = bootstrap_branch
        self.blobs = BlobStore(client, max_concurrent=max_concurrent_blobs)
        self.trees = TreeComposer(client)

    async def commit(
        self,
        repo: RepositoryRef,
        request: CommitRequest,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> CommitResult:
        """Apply every change of `request` to its branch as a single commit.

        Raises:
            AuthenticationError: No credential, or the remote rejected it
            ValidationError: Empty write, duplicate or malformed paths
            NotFoundError: Branch missing and not eligible for bootstrap
            ConflictError: The branch moved while the commit was prepared
            WriteCancelledError: `cancel_event` was set between sub-calls
            RemoteError: Any other remote failure
        """
        ObjectClient.require_credential(repo, "commit")
        request.validate()

        log = StoreLoggerAdapter(logger, repo, request.branch)
        tracker = CallTracker(
            branch=request.branch,
            planned=FIXED_CALLS + len(request.binary_changes),
            on_progress=on_progress,
            cancel_event=cancel_event,
        )
        ctx = _ChainContext()
        state = ChainState.RESOLVING

        log.info(
            f"Committing {len(request.text_changes)} text and "
            f"{len(request.binary_changes)} binary changes"
        )
        try:
            while state is not ChainState.DONE:
                log.debug(f"Commit chain state: {state.value}")
                if state is ChainState.RESOLVING:
                    state = await self._resolve(repo, request, tracker, ctx)
                elif state is ChainState.BOOTSTRAPPING:
                    state = await self._bootstrap(repo, request.branch, tracker, ctx, log)
                elif state is ChainState.COMPOSING:
                    state = await self._compose(repo, request, tracker, ctx)
                elif state is ChainState.COMMITTING:
                    state = await self._create_commit(repo, request, tracker, ctx)
                elif state is ChainState.UPDATING_REF:
                    state = await self._update_ref(repo, request.branch, tracker, ctx)
        except Exception as e:
            failed_step, state = state, ChainState.FAILED
            log.warning(
                f"Commit chain failed while {failed_step.value}: {e}",
                extra={"chain_state": state.value, "failed_step": failed_step.value},
            )
            raise

        log.info(f"Branch {request.branch} advanced {ctx.tip} -> {ctx.commit}")
        return CommitResult(
            commit_sha=ctx.require("commit"),
            tree_sha=ctx.require("tree"),
            parent_sha=ctx.require("tip"),
            branch=request.branch,
            bootstrapped=ctx.bootstrapped,
            blob_shas=ctx.blob_shas,
        )

    # =========================================================================
    # States
    # =========================================================================

    async def _resolve(
        self,
        repo: RepositoryRef,
        request: CommitRequest,
        tracker: CallTracker,
        ctx: _ChainContext,
    ) -> ChainState:
        tracker.checkpoint()
        try:
            ctx.tip = await self.client.get_ref(repo, request.branch)
        except NotFoundError:
            if ctx.bootstrapped or request.branch != self.bootstrap_branch:
                raise
            return ChainState.BOOTSTRAPPING
        tracker.advance()

        tracker.checkpoint()
        commit = await self.client.get_commit(repo, ctx.tip)
        ctx.base_tree = GitObjectId(commit["tree"]["sha"])
        tracker.advance()
        return ChainState.COMPOSING

    async def _bootstrap(
        self,
        repo: RepositoryRef,
        branch: str,
        tracker: CallTracker,
        ctx: _ChainContext,
        log: StoreLoggerAdapter,
    ) -> ChainState:
        log.info(f"Branch {branch} not found, creating it from a root commit")
        ctx.bootstrapped = True
        tracker.extend(BOOTSTRAP_CALLS)

        tracker.checkpoint()
        tree = await self.trees.compose_root(repo)
        tracker.advance()

        tracker.checkpoint()
        root = await self.client.create_commit(repo, BOOTSTRAP_COMMIT_MESSAGE, tree, parents=[])
        tracker.advance()

        tracker.checkpoint()
        try:
            await self.client.create_ref(repo, branch, root)
        except RemoteError as e:
            if e.status not in REF_REJECTION_STATUSES:
                raise
            # Another writer created the branch first; use theirs.
            log.info(f"Branch {branch} appeared concurrently: {e.remote_message}")
        tracker.advance()
        return ChainState.RESOLVING

    async def _compose(
        self,
        repo: RepositoryRef,
        request: CommitRequest,
        tracker: CallTracker,
        ctx: _ChainContext,
    ) -> ChainState:
        base_tree = ctx.require("base_tree")
        ctx.blob_shas = await self.blobs.create_blobs(repo, request.binary_changes, tracker)

        tracker.checkpoint()
        entries = entries_for(request.text_changes, ctx.blob_shas)
        ctx.tree = await self.trees.compose(repo, base_tree, entries)
        tracker.advance()
        return ChainState.COMMITTING

    async def _create_commit(
        self,
        repo: RepositoryRef,
        request: CommitRequest,
        tracker: CallTracker,
        ctx: _ChainContext,
    ) -> ChainState:
        tree, tip = ctx.require("tree"), ctx.require("tip")
        tracker.checkpoint()
        ctx.commit = await self.client.create_commit(repo, request.message, tree, parents=[tip])
        tracker.advance()
        return ChainState.UPDATING_REF

    async def _update_ref(
        self,
        repo: RepositoryRef,
        branch: str,
        tracker: CallTracker,
        ctx: _ChainContext,
    ) -> ChainState:
        commit = ctx.require("commit")
        tracker.checkpoint()
        try:
            await self.client.update_ref(repo, branch, commit, force=False)
        except RemoteError as e:
            if e.status in REF_REJECTION_STATUSES:
                raise ConflictError(
                    branch,
                    expected_parent=ctx.tip,
                    attempted_commit=commit,
                    remote_message=e.remote_message,
                ) from e
            raise
        tracker.advance()
        return ChainState.DONE
