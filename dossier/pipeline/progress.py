"""Job progress checkpoints, monotonic reporting, and the progress -> label map."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import IntEnum

logger = logging.getLogger(__name__)

ProgressSink = Callable[[int], Awaitable[None] | None]


class Checkpoint(IntEnum):
    RUNNING = 5
    CLAIM_LOADED = 10
    SEARCHING = 15
    SEARCHED = 25
    DEDUPLICATED = 30
    PAPERS_STORED = 40
    EMBEDDINGS_INDEXED = 55
    PASSAGES_FOUND = 60
    EXTRACTION_DONE = 80
    SYNTHESIZING = 85
    SAVING = 95
    COMPLETE = 100


# Upper bounds (exclusive) for each label; anything >= 100 is "Complete".
_STEP_LABELS: tuple[tuple[int, str], ...] = (
    (10, "Queued"),
    (15, "Loading claim"),
    (25, "Searching papers"),
    (30, "Deduplicating results"),
    (40, "Storing papers"),
    (55, "Generating embeddings"),
    (60, "Finding relevant passages"),
    (85, "Extracting evidence"),
    (95, "Synthesizing verdict"),
    (100, "Saving results"),
)


def step_label(progress: int) -> str:
    """Human-readable step for a progress value."""
    for upper, label in _STEP_LABELS:
        if progress < upper:
            return label
    return "Complete"


def extraction_progress(done: int, total: int) -> int:
    """Progress while extracting: slides from 60 to 80 as papers complete."""
    if total <= 0:
        return int(Checkpoint.EXTRACTION_DONE)
    span = Checkpoint.EXTRACTION_DONE - Checkpoint.PASSAGES_FOUND
    return int(Checkpoint.PASSAGES_FOUND + round(span * min(done, total) / total))


class ProgressReporter:
    """Forwards progress to a sink, never letting it go backwards.

    Values are clamped to 0..100; a value lower than the last reported one is
    dropped. The sink may be a plain or an async callable.
    """

    def __init__(self, sink: ProgressSink | None = None) -> None:
        self._sink = sink
        self.current = 0
        self.history: list[int] = []

    async def report(self, value: int) -> None:
        value = max(0, min(100, int(value)))
        if value < self.current:
            logger.debug("Ignoring non-monotonic progress %d (current %d)", value, self.current)
            return
        self.current = value
        self.history.append(value)
        if self._sink is not None:
            result = self._sink(value)
            if inspect.isawaitable(result):
                await result
