"""
Progress accounting and cooperative cancellation for a commit chain.

The chain plans a number of remote sub-calls up front. Before each call it
checks the cancel signal; after each call it advances the counter and
notifies an optional callback (used by upload-progress displays).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..exceptions import WriteCancelledError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class CallTracker:
    """Counts completed sub-calls against the planned total."""

    def __init__(
        self,
        branch: str,
        planned: int,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.branch = branch
        self.planned = planned
        self.completed = 0
        self.on_progress = on_progress
        self.cancel_event = cancel_event

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def checkpoint(self) -> None:
        """Raise if the caller asked to stop before the next sub-call."""
        if self.cancelled:
            raise WriteCancelledError(self.branch, self.completed, self.planned)

    def extend(self, extra_calls: int) -> None:
        self.planned += extra_calls

    def advance(self) -> None:
        self.completed += 1
        if self.on_progress is None:
            return
        try:
            self.on_progress(self.completed, self.planned)
        except Exception as e:
            # A broken progress display must not fail the write.
            logger.warning(f"Progress callback failed: {e}")
