"""Index State - tracks indexed files for incremental indexing.

Persists filename -> (mtime, size) next to the workspace index so that an
incremental scan can re-chunk only new or changed files and prune deleted ones.
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

INDEX_STATE_FILENAME = "index_state.json"

FileStamp = dict[str, float | int]


class IndexState:
    """Tracks which files are indexed and their modification state."""

    def __init__(self, state_file: Path | str) -> None:
        self._state_file = Path(state_file)
        self._files: dict[str, FileStamp] = {}
        self._load()

    @property
    def files(self) -> dict[str, FileStamp]:
        return dict(self._files)

    def _load(self) -> None:
        """Load state from disk."""
        if not self._state_file.exists():
            self._files = {}
            return
        try:
            data = json.loads(self._state_file.read_text(encoding="utf-8"))
            self._files = data.get("files", {}) if isinstance(data, dict) else {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to load index state: %s, starting fresh", e)
            self._files = {}

    def _save(self) -> None:
        """Persist state to disk."""
        try:
            self._state_file.parent.mkdir(parents=True, exist_ok=True)
            self._state_file.write_text(
                json.dumps({"files": self._files}, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as e:
            logger.error("Failed to save index state: %s", e)

    def mark_indexed(self, filename: str, mtime: float, size: int, chunks: int = 1) -> None:
        self._files[filename] = {"mtime": mtime, "size": size, "chunks": chunks}
        self._save()

    def orphans(self, stored: set[str]) -> set[str]:
        """Files recorded with chunks that the store no longer holds.

        Happens when the index was discarded on load (corrupt, old schema,
        other embedding model) while this state file survived.
        """
        return {name for name, stamp in self._files.items() if stamp.get("chunks", 1) and name not in stored}

    def forget(self, filenames: set[str]) -> None:
        for name in filenames:
            self._files.pop(name, None)
        self._save()

    def clear(self) -> None:
        self._files = {}
        self._save()

    @staticmethod
    def diff_files(
        current: dict[str, FileStamp],
        indexed: dict[str, FileStamp],
    ) -> tuple[list[str], list[str], list[str]]:
        """Compare current files with indexed state.

        Returns:
            (new_files, changed_files, deleted_files), each sorted

        """
        current_paths = set(current)
        indexed_paths = set(indexed)

        new = sorted(current_paths - indexed_paths)
        deleted = sorted(indexed_paths - current_paths)

        changed: list[str] = []
        for path in sorted(current_paths & indexed_paths):
            cur = current[path]
            idx = indexed[path]
            if cur.get("mtime") != idx.get("mtime") or cur.get("size") != idx.get("size"):
                changed.append(path)

        return (new, changed, deleted)
