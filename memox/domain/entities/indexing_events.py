"""Indexing run states and per-file outcome events."""

from enum import Enum

from pydantic import BaseModel


class IndexingState(str, Enum):
    """Lifecycle of one indexing run."""

    IDLE = "idle"
    ENUMERATING = "enumerating"
    INDEXING = "indexing"  # reading -> chunking -> embedding+persisting, per file
    CANCELLED = "cancelled"


class FileStatus(str, Enum):
    """What happened to a single file during a scan."""

    INDEXED = "indexed"
    UNCHANGED = "unchanged"  # incremental scans only
    SKIPPED_LARGE = "skipped_large"
    SKIPPED_BINARY = "skipped_binary"
    FAILED = "failed"


class FileOutcome(BaseModel):
    """Result of processing one file. Emitted after its chunks are persisted."""

    filename: str
    status: FileStatus
    chunks: int = 0
    index: int  # 1-based position in the scan
    total: int
    error: str | None = None


class IndexProgress(BaseModel):
    """Progress event for a UI progress indicator."""

    processed: int
    total: int
    message: str

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 100
        return round(self.processed / self.total * 100)


class IndexReport(BaseModel):
    """Summary of a finished (or cancelled) indexing run."""

    roots: list[str] = []
    files_found: int = 0
    files_indexed: int = 0
    files_unchanged: int = 0
    files_deleted: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    chunks_added: int = 0
    total_chunks: int = 0
    cancelled: bool = False
    incremental: bool = False
