"""Progress adapter: turns per-file scan outcomes into UI progress events."""

import logging
from collections.abc import Awaitable, Callable
from pathlib import PurePosixPath

from memox.domain.entities.indexing_events import (
    FileOutcome,
    FileStatus,
    IndexProgress,
    IndexReport,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[IndexProgress], Awaitable[None]]

_STATUS_LABELS = {
    FileStatus.INDEXED: "Indexing",
    FileStatus.UNCHANGED: "Unchanged",
    FileStatus.SKIPPED_LARGE: "Skipping large file",
    FileStatus.SKIPPED_BINARY: "Skipping binary file",
    FileStatus.FAILED: "Error/Skipped",
}


class CancellationToken:
    """Cooperative cancellation flag, checked by the scan between files."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


def outcome_message(outcome: FileOutcome) -> str:
    """Human-readable progress line, e.g. ``Indexing: 50% - app.py``."""
    pct = round(outcome.index / outcome.total * 100) if outcome.total else 100
    name = PurePosixPath(outcome.filename).name
    return f"{_STATUS_LABELS[outcome.status]}: {pct}% - {name}"


class ProgressReporter:
    """Forwards progress to an optional async callback.

    A failing callback is logged and ignored: a broken progress bar must not
    abort indexing.
    """

    def __init__(self, on_progress: ProgressCallback | None = None) -> None:
        self._on_progress = on_progress

    async def _emit(self, event: IndexProgress) -> None:
        if self._on_progress is None:
            return
        try:
            await self._on_progress(event)
        except Exception:
            logger.warning("Progress callback failed", exc_info=True)

    async def started(self, total: int) -> None:
        await self._emit(
            IndexProgress(processed=0, total=total, message=f"Found {total} text files. Starting indexing...")
        )

    async def file_done(self, outcome: FileOutcome) -> None:
        await self._emit(IndexProgress(processed=outcome.index, total=outcome.total, message=outcome_message(outcome)))

    async def finished(self, report: IndexReport, processed: int) -> None:
        if report.cancelled:
            message = "Workspace indexing cancelled."
        else:
            message = "Indexing complete!"
        await self._emit(IndexProgress(processed=processed, total=report.files_found, message=message))
