"""RAG Port - chunk and search-hit models shared by store, coordinator and API."""

from pydantic import BaseModel, Field, model_validator


class ChunkMetadata(BaseModel):
    """Where a chunk came from. Lines are 1-based and inclusive."""

    filename: str
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)

    @model_validator(mode="after")
    def _check_range(self) -> "ChunkMetadata":
        if self.start_line > self.end_line:
            raise ValueError(f"start_line {self.start_line} > end_line {self.end_line}")
        return self


class CodeChunk(BaseModel):
    """A contiguous span of source lines, optionally embedded."""

    content: str
    metadata: ChunkMetadata
    embedding: list[float] | None = None

    def identity(self) -> tuple[str, int, int, str]:
        """Key used to detect re-added chunks."""
        m = self.metadata
        return (m.filename, m.start_line, m.end_line, self.content)

    def header(self) -> str:
        """Traceability label: ``file (start-end)``."""
        m = self.metadata
        return f"{m.filename} ({m.start_line}-{m.end_line})"


class ScoredChunk(BaseModel):
    """Search hit with cosine similarity score."""

    chunk: CodeChunk
    score: float
