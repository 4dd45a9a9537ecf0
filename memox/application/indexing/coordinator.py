"""Index Coordinator - workspace scan orchestration and query-time context.

Owns one vector store per workspace. Indexing walks every root, skips
unsuitable files, chunks the rest and persists them file by file, so progress
always reflects what is on disk and a cancelled or crashed scan keeps
everything already written.
"""

import asyncio
import hashlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path

from memox.application.indexing.context import build_context
from memox.application.indexing.progress import (
    CancellationToken,
    ProgressCallback,
    ProgressReporter,
)
from memox.domain.entities.indexing_events import (
    FileOutcome,
    FileStatus,
    IndexingState,
    IndexReport,
)
from memox.domain.errors import BinaryFileError, FileTooLargeError, IndexBusyError, SkippableFileError
from memox.domain.ports.config import RAGConfig
from memox.domain.ports.embeddings import EmbeddingsPort
from memox.domain.ports.filesystem import FileHandle, FileSystemPort
from memox.domain.ports.rag import ScoredChunk
from memox.infrastructure.filesystem.local import LocalFileSystem, parse_ignore_file
from memox.infrastructure.rag.chunker import chunk_file
from memox.infrastructure.rag.index_state import INDEX_STATE_FILENAME, IndexState
from memox.infrastructure.rag.vector_store import JsonVectorStore

logger = logging.getLogger(__name__)


def workspace_key(roots: list[Path]) -> str:
    """Stable short id for a set of workspace roots."""
    joined = "\n".join(sorted(str(r.resolve()) for r in roots))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]


class IndexCoordinator:
    """Scan a workspace into a vector store and build LLM context from it."""

    def __init__(
        self,
        roots: list[Path],
        store: JsonVectorStore,
        fs: FileSystemPort,
        config: RAGConfig,
        index_state: IndexState | None = None,
    ) -> None:
        if not roots:
            raise ValueError("At least one workspace root is required")
        self._roots = [Path(r).resolve() for r in roots]
        self._store = store
        self._fs = fs
        self._config = config
        self._index_state = index_state
        self._state = IndexingState.IDLE
        self._run_lock = asyncio.Lock()
        self._initialized = False
        self._last_report: IndexReport | None = None
        self._pruned = 0
        self._active_cancel: CancellationToken | None = None

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    @property
    def state(self) -> IndexingState:
        return self._state

    @property
    def store(self) -> JsonVectorStore:
        return self._store

    @property
    def is_indexing(self) -> bool:
        return self._run_lock.locked()

    @property
    def last_report(self) -> IndexReport | None:
        return self._last_report

    async def initialize(self) -> None:
        """Create the storage directory and load the persisted index. Idempotent."""
        if self._initialized:
            return
        await asyncio.to_thread(self._store.path.parent.mkdir, parents=True, exist_ok=True)
        await self._store.load()
        self._initialized = True

    # -- enumeration -------------------------------------------------------

    def _display_name(self, handle: FileHandle) -> str:
        if len(self._roots) > 1:
            return f"{handle.root.name}/{handle.relative}"
        return handle.relative

    async def _exclude_for(self, root: Path) -> list[str]:
        exclude = list(self._config.exclude_globs)
        if not self._config.respect_gitignore:
            return exclude
        gitignore = root / ".gitignore"
        if not gitignore.is_file():
            return exclude
        try:
            data = await self._fs.read_bytes(FileHandle(root=root, path=gitignore))
        except OSError as e:
            logger.warning("Cannot read %s: %s", gitignore, e)
            return exclude
        return exclude + parse_ignore_file(data)

    def _storage_dirs(self) -> list[Path]:
        return list({self._store.path.parent.resolve(), Path(self._config.storage_dir).resolve()})

    @staticmethod
    def _inside(path: Path, dirs: list[Path]) -> bool:
        return any(path.is_relative_to(d) for d in dirs)

    async def _enumerate(self) -> list[tuple[FileHandle, str]]:
        # The index lives on disk too; never feed it back into itself
        storage = self._storage_dirs()
        files: list[tuple[FileHandle, str]] = []
        for root in self._roots:
            handles = await self._fs.list_files(root, await self._exclude_for(root))
            files.extend((h, self._display_name(h)) for h in handles if not self._inside(h.path.resolve(), storage))
        limit = self._config.max_file_count
        if len(files) > limit:
            logger.warning("Reached max file limit (%d of %d found), ignoring the rest", limit, len(files))
            files = files[:limit]
        return files

    # -- scan --------------------------------------------------------------

    async def _prune(self, files: list[tuple[FileHandle, str]]) -> set[str]:
        """Incremental mode: drop deleted/changed files from the store, return unchanged names."""
        if self._index_state is None:
            return set()
        await self._store.reconcile_model()
        current: dict[str, dict[str, float | int]] = {}
        for handle, name in files:
            try:
                mtime, size = await self._fs.stat(handle)
            except OSError:
                continue
            current[name] = {"mtime": mtime, "size": size}

        orphans = self._index_state.orphans(set(self._store.indexed_files()))
        if orphans:
            logger.warning("Index is missing %d recorded files, re-indexing them", len(orphans))
            self._index_state.forget(orphans)

        new, changed, deleted = IndexState.diff_files(current, self._index_state.files)
        stale = set(changed) | set(deleted)
        if stale:
            await self._store.remove_files(stale)
            self._index_state.forget(stale)
        self._pruned = len(deleted)
        logger.info(
            "Incremental scan: %d new, %d changed, %d deleted, %d unchanged",
            len(new),
            len(changed),
            len(deleted),
            len(current) - len(new) - len(changed),
        )
        return set(current) - set(new) - set(changed)

    def _check_size(self, name: str, size: int) -> None:
        # Oversized files are skipped whole, never truncated
        if size > self._config.max_file_size:
            raise FileTooLargeError(name, f"{size} bytes exceeds {self._config.max_file_size}")

    async def _process_file(
        self,
        handle: FileHandle,
        name: str,
        index: int,
        total: int,
        unchanged: set[str],
    ) -> FileOutcome:
        def outcome(status: FileStatus, chunks: int = 0, error: str | None = None) -> FileOutcome:
            return FileOutcome(filename=name, status=status, chunks=chunks, index=index, total=total, error=error)

        try:
            mtime, size = await self._fs.stat(handle)
            self._check_size(name, size)
        except OSError as e:
            logger.warning("Cannot stat %s: %s", name, e)
            return outcome(FileStatus.FAILED, error=str(e))
        except FileTooLargeError as e:
            logger.info("Skipping large file %s: %s", name, e.reason)
            return outcome(FileStatus.SKIPPED_LARGE, error=e.reason)

        if name in unchanged:
            return outcome(FileStatus.UNCHANGED)

        try:
            chunks = await chunk_file(self._fs, handle, name, self._config.chunk_lines)
            await self._store.add_chunks(chunks)
        except BinaryFileError as e:
            logger.warning("Skipping binary file %s: %s", name, e.reason)
            return outcome(FileStatus.SKIPPED_BINARY, error=e.reason)
        except SkippableFileError as e:
            logger.warning("Skipping file %s: %s", name, e.reason)
            return outcome(FileStatus.FAILED, error=e.reason)
        except Exception as e:
            # Embedding or persistence failure: this file is missing until the next scan
            logger.error("Failed to index %s: %s", name, e, exc_info=True)
            return outcome(FileStatus.FAILED, error=str(e))

        if self._index_state is not None:
            self._index_state.mark_indexed(name, mtime, size, len(chunks))
        return outcome(FileStatus.INDEXED, chunks=len(chunks))

    async def scan(
        self,
        cancel: CancellationToken | None = None,
        incremental: bool = False,
        on_enumerated: Callable[[int], Awaitable[None]] | None = None,
    ) -> AsyncIterator[FileOutcome]:
        """Yield one outcome per file, each after its chunks are persisted.

        Cancellation is checked before each file; on cancel the generator stops
        and leaves the state CANCELLED. Per-file errors never escape.
        """
        await self.initialize()
        self._state = IndexingState.ENUMERATING
        self._pruned = 0
        try:
            files = await self._enumerate()
            total = len(files)
            logger.info("Found %d files under %s", total, ", ".join(str(r) for r in self._roots))
            if on_enumerated is not None:
                await on_enumerated(total)

            unchanged = await self._prune(files) if incremental else set()

            self._state = IndexingState.INDEXING
            for index, (handle, name) in enumerate(files, 1):
                if cancel is not None and cancel.is_cancelled:
                    logger.info("Indexing cancelled after %d of %d files", index - 1, total)
                    self._state = IndexingState.CANCELLED
                    return
                yield await self._process_file(handle, name, index, total, unchanged)
        finally:
            if self._state is not IndexingState.CANCELLED:
                self._state = IndexingState.IDLE

    async def index_workspace(
        self,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        incremental: bool = False,
    ) -> IndexReport:
        """Index every eligible file under the workspace roots.

        Full mode clears the index first; incremental mode keeps unchanged files
        and prunes deleted ones. Raises IndexBusyError if a run is in progress.
        """
        if self._run_lock.locked():
            raise IndexBusyError("Indexing already in progress")

        cancel = cancel or CancellationToken()
        async with self._run_lock:
            self._active_cancel = cancel
            try:
                report = await self._run(on_progress, cancel, incremental)
            finally:
                self._active_cancel = None

        logger.info(
            "Indexing %s: %d indexed, %d skipped, %d failed, %d chunks in index",
            "cancelled" if report.cancelled else "complete",
            report.files_indexed,
            report.files_skipped,
            report.files_failed,
            report.total_chunks,
        )
        self._last_report = report
        return report

    def cancel(self) -> bool:
        """Request cancellation of the running scan. False if nothing is running."""
        if self._active_cancel is None:
            return False
        self._active_cancel.cancel()
        return True

    async def _run(
        self,
        on_progress: ProgressCallback | None,
        cancel: CancellationToken,
        incremental: bool,
    ) -> IndexReport:
        await self.initialize()
        incremental = incremental and self._index_state is not None
        if not incremental:
            await self._store.clear()
            if self._index_state is not None:
                self._index_state.clear()

        reporter = ProgressReporter(on_progress)
        report = IndexReport(roots=[str(r) for r in self._roots], incremental=incremental)

        async def enumerated(total: int) -> None:
            report.files_found = total
            await reporter.started(total)

        processed = 0
        async for outcome in self.scan(cancel=cancel, incremental=incremental, on_enumerated=enumerated):
            processed += 1
            if outcome.status is FileStatus.INDEXED:
                report.files_indexed += 1
                report.chunks_added += outcome.chunks
            elif outcome.status is FileStatus.UNCHANGED:
                report.files_unchanged += 1
            elif outcome.status is FileStatus.FAILED:
                report.files_failed += 1
            else:
                report.files_skipped += 1
            await reporter.file_done(outcome)

        report.cancelled = self._state is IndexingState.CANCELLED
        report.files_deleted = self._pruned
        report.total_chunks = self._store.count()
        await reporter.finished(report, processed)
        return report

    # -- query time --------------------------------------------------------

    async def search(self, query: str, k: int | None = None) -> list[ScoredChunk]:
        """Top-k chunks for the query. Raises QueryEmbeddingError on embedding failure."""
        await self.initialize()
        return await self._store.search(query, self._config.default_k if k is None else k)

    async def get_relevant_context(
        self,
        query: str,
        max_tokens: int | None = None,
        k: int | None = None,
    ) -> str:
        """Ranked chunks joined under a word-count budget; "" when nothing fits."""
        budget = self._config.default_max_tokens if max_tokens is None else max_tokens
        if budget <= 0:
            return ""
        hits = await self.search(query, k)
        return build_context(hits, budget)

    async def clear(self) -> None:
        """Drop the whole index (and incremental state)."""
        if self._run_lock.locked():
            raise IndexBusyError("Cannot clear while indexing")
        await self.initialize()
        await self._store.clear()
        if self._index_state is not None:
            self._index_state.clear()
        self._last_report = None

    def stats(self) -> dict:
        return {
            **self._store.stats(),
            "state": self._state.value,
            "roots": [str(r) for r in self._roots],
            "last_report": self._last_report.model_dump() if self._last_report else None,
        }


def create_coordinator(
    config: RAGConfig,
    embeddings: EmbeddingsPort,
    roots: list[Path] | None = None,
    fs: FileSystemPort | None = None,
) -> IndexCoordinator:
    """Wire a coordinator with its own store under ``storage_dir/<workspace key>/``."""
    resolved = [Path(r).resolve() for r in (roots or [Path(r) for r in config.workspace_roots])]
    storage = Path(config.storage_dir) / workspace_key(resolved)
    store = JsonVectorStore(
        storage / config.index_filename,
        embeddings,
        batch_size=config.batch_size,
        embed_timeout=config.embed_timeout,
    )
    return IndexCoordinator(
        roots=resolved,
        store=store,
        fs=fs or LocalFileSystem(),
        config=config,
        index_state=IndexState(storage / INDEX_STATE_FILENAME),
    )
