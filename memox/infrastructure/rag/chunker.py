"""Line-window chunker.

Splits a file into contiguous, non-overlapping line ranges of at most
``window`` lines. With ``respect_boundaries`` a window may end early (never
before half its size) so that a new definition or a blank-line gap starts the
next chunk instead of being cut in half. Output depends only on the content.
"""

import logging
import re

from memox.domain.errors import BinaryFileError, FileReadError
from memox.domain.ports.filesystem import FileHandle, FileSystemPort
from memox.domain.ports.rag import ChunkMetadata, CodeChunk

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_LINES = 50

# Lines that open a top-level definition in common languages
_DEFINITION_RE = re.compile(
    r"^(?:async\s+def|def|class|function|export|public|private|protected|func|fn|impl|interface|struct|type)\b"
)


def decode_text(filename: str, data: bytes) -> str:
    """Decode file bytes as UTF-8 text or raise BinaryFileError."""
    if b"\x00" in data:
        raise BinaryFileError(filename, "contains NUL bytes")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise BinaryFileError(filename, f"not valid UTF-8 ({e.reason})") from e


def split_lines(text: str) -> list[str]:
    """Split on newlines; a trailing newline does not add an empty last line."""
    if not text:
        return []
    lines = text.replace("\r\n", "\n").split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def _find_split(lines: list[str], start: int, end: int, window: int) -> int:
    """Index where the next chunk should start, in (start + window // 2, end]."""
    floor = start + max(1, window // 2)
    for i in range(end, floor, -1):
        if _DEFINITION_RE.match(lines[i]):
            return i
    for i in range(end, floor, -1):
        if not lines[i - 1].strip():
            return i
    return end


def chunk_lines(
    filename: str,
    content: str,
    window: int = DEFAULT_CHUNK_LINES,
    respect_boundaries: bool = True,
) -> list[CodeChunk]:
    """Split text into line-range chunks.

    Args:
        filename: Workspace-relative name stored in chunk metadata
        content: Decoded file text
        window: Maximum lines per chunk
        respect_boundaries: Prefer ending chunks before definitions / after blank lines

    Returns:
        Chunks in file order; whitespace-only ranges are dropped

    Raises:
        ValueError: If window is not positive

    """
    if window <= 0:
        raise ValueError("window must be positive")

    lines = split_lines(content)
    chunks: list[CodeChunk] = []
    start = 0
    total = len(lines)

    while start < total:
        end = min(start + window, total)
        if respect_boundaries and end < total:
            end = _find_split(lines, start, end, window)

        text = "\n".join(lines[start:end])
        if text.strip():
            chunks.append(
                CodeChunk(
                    content=text,
                    metadata=ChunkMetadata(filename=filename, start_line=start + 1, end_line=end),
                )
            )
        start = end

    return chunks


async def chunk_file(
    fs: FileSystemPort,
    handle: FileHandle,
    filename: str | None = None,
    window: int = DEFAULT_CHUNK_LINES,
    respect_boundaries: bool = True,
) -> list[CodeChunk]:
    """Read a file through the file-system port and chunk it.

    Raises BinaryFileError for non-text content and FileReadError for OS errors;
    both are SkippableFileError so callers can skip the file and continue.
    """
    name = filename or handle.relative
    try:
        data = await fs.read_bytes(handle)
    except OSError as e:
        raise FileReadError(name, str(e)) from e
    text = decode_text(name, data)
    chunks = chunk_lines(name, text, window, respect_boundaries)
    logger.debug("Chunked %s: %d lines -> %d chunks", name, len(split_lines(text)), len(chunks))
    return chunks
