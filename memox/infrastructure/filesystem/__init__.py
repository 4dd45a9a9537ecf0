"""File system adapters."""

from memox.infrastructure.filesystem.local import LocalFileSystem

__all__ = ["LocalFileSystem"]
