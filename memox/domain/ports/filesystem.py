"""File System Port - thin capability for enumerating and reading workspace files."""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class FileHandle:
    """A file found under a workspace root."""

    root: Path
    path: Path

    @property
    def relative(self) -> str:
        """Path relative to its root, POSIX separators."""
        return self.path.relative_to(self.root).as_posix()


class FileSystemPort(Protocol):
    """Enumerate/read/stat. Policy (what to exclude, size limits) lives in the caller."""

    async def list_files(self, root: Path, exclude: list[str]) -> list[FileHandle]:
        """List files under root, skipping paths matching the exclude globs."""
        ...

    async def read_bytes(self, handle: FileHandle) -> bytes:
        """Read raw file content."""
        ...

    async def stat_size(self, handle: FileHandle) -> int:
        """File size in bytes."""
        ...

    async def stat(self, handle: FileHandle) -> tuple[float, int]:
        """(mtime, size), used to detect changed files between scans."""
        ...
