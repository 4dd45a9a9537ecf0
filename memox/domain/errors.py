"""Domain errors for indexing and retrieval.

Skippable errors exclude a single file from the index. Indexing errors lose one
file's chunks for this scan. Query errors are raised to the caller so that a
failed search is never mistaken for "no relevant code".
"""


class MemoxError(Exception):
    """Base error."""


class SkippableFileError(MemoxError):
    """File cannot be indexed; the scan continues without it."""

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"{filename}: {reason}")
        self.filename = filename
        self.reason = reason


class BinaryFileError(SkippableFileError):
    """Content contains NUL bytes or is not valid UTF-8."""


class FileTooLargeError(SkippableFileError):
    """File exceeds the configured size ceiling."""


class FileReadError(SkippableFileError):
    """OS error while reading (permissions, vanished file)."""


class IndexingError(MemoxError):
    """Embedding or persistence failed while adding chunks."""


class EmbeddingDimensionError(IndexingError):
    """Vector length differs from the index dimension."""


class IndexPersistenceError(IndexingError):
    """Index document could not be written."""


class QueryEmbeddingError(MemoxError):
    """The query itself could not be embedded."""


class EmbeddingsUnavailableError(MemoxError):
    """The embedding provider failed to initialize."""


class IndexBusyError(MemoxError):
    """An indexing run is already in progress for this workspace."""
