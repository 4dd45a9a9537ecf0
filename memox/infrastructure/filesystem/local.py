"""Local file system adapter - implements FileSystemPort over pathlib.

Exclude globs:
- ``name/`` (or ``**/name/**``) matches a directory component anywhere
- anything else matches the relative path or the bare file name
- ``!pattern`` re-includes a file matched by a file pattern; as in git, a
  file inside an excluded directory stays excluded
"""

import asyncio
import fnmatch
import logging
import os
from pathlib import Path

from memox.domain.ports.filesystem import FileHandle

logger = logging.getLogger(__name__)


def normalize_pattern(pattern: str) -> str:
    """Reduce editor-style globs (``**/x/**``, ``**/*.log``) to the simple forms above."""
    p = pattern.strip().replace("\\", "/")
    while p.startswith("**/"):
        p = p[3:]
    if p.endswith("/**"):
        p = p[:-2]
    # Root anchors ("/build") are treated as unanchored
    return p.lstrip("/")


def split_patterns(patterns: list[str]) -> tuple[list[str], list[str]]:
    """Return (directory_patterns, file_patterns), normalized, empties dropped."""
    dirs: list[str] = []
    files: list[str] = []
    for raw in patterns:
        p = normalize_pattern(raw)
        if not p or p.startswith("!"):
            continue
        if p.endswith("/"):
            dirs.append(p.rstrip("/"))
        else:
            files.append(p)
    return dirs, files


def negated_patterns(patterns: list[str]) -> list[str]:
    """Normalized ``!`` patterns, without the ``!``."""
    negated = []
    for raw in patterns:
        p = raw.strip()
        if p.startswith("!"):
            p = normalize_pattern(p[1:])
            if p:
                negated.append(p)
    return negated


def is_excluded(rel_path: str, patterns: list[str]) -> bool:
    """Check a root-relative POSIX path against exclude globs."""
    dir_patterns, file_patterns = split_patterns(patterns)
    parts = rel_path.split("/")
    for part in parts[:-1]:
        if any(fnmatch.fnmatch(part, d) for d in dir_patterns):
            return True
    filename = parts[-1]

    def matches(pattern: str) -> bool:
        return fnmatch.fnmatch(rel_path, pattern) or fnmatch.fnmatch(filename, pattern)

    if not any(matches(f) for f in file_patterns):
        return False
    return not any(matches(n) for n in negated_patterns(patterns))


def parse_ignore_file(data: bytes) -> list[str]:
    """Patterns from .gitignore content, negations (``!x``) included."""
    try:
        content = data.decode("utf-8")
    except UnicodeDecodeError:
        content = data.decode("latin-1")
    patterns = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or line == "!":
            continue
        patterns.append(line)
    return patterns


class LocalFileSystem:
    """Blocking pathlib calls pushed to a worker thread so the event loop stays free."""

    def __init__(self, follow_symlinks: bool = False) -> None:
        self._follow_symlinks = follow_symlinks

    def _walk(self, root: Path, exclude: list[str]) -> list[FileHandle]:
        root = root.resolve()
        if not root.is_dir():
            logger.warning("Path is not a directory: %s", root)
            return []

        dir_patterns, _ = split_patterns(exclude)
        handles: list[FileHandle] = []
        for dirpath, dirnames, filenames in os.walk(root, followlinks=self._follow_symlinks):
            # Prune excluded directories in place so os.walk never descends into them
            dirnames[:] = sorted(d for d in dirnames if not any(fnmatch.fnmatch(d, p) for p in dir_patterns))
            current = Path(dirpath)
            for name in sorted(filenames):
                path = current / name
                if path.is_symlink() and not self._follow_symlinks:
                    continue
                rel = path.relative_to(root).as_posix()
                if is_excluded(rel, exclude):
                    continue
                handles.append(FileHandle(root=root, path=path))
        return handles

    async def list_files(self, root: Path, exclude: list[str]) -> list[FileHandle]:
        """List files under root in a stable (sorted, depth-first) order."""
        return await asyncio.to_thread(self._walk, root, exclude)

    async def read_bytes(self, handle: FileHandle) -> bytes:
        return await asyncio.to_thread(handle.path.read_bytes)

    async def stat_size(self, handle: FileHandle) -> int:
        stat = await asyncio.to_thread(handle.path.stat)
        return stat.st_size

    async def stat(self, handle: FileHandle) -> tuple[float, int]:
        """(mtime, size) for incremental indexing."""
        stat = await asyncio.to_thread(handle.path.stat)
        return stat.st_mtime, stat.st_size
