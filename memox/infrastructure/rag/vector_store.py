"""JSON-backed vector store with exact cosine search.

Production-ready with:
- Single JSON document per workspace, versioned schema
- Atomic writes (temp file + rename) after every add_chunks batch
- In-memory cache with a lazily rebuilt, row-normalized numpy matrix
- Deterministic ranking: descending cosine, ties by insertion order
- Embedding model recorded; an index from another model is discarded
"""

import asyncio
import json
import logging
from pathlib import Path

import numpy as np
from pydantic import ValidationError

from memox.domain.errors import (
    EmbeddingDimensionError,
    EmbeddingsUnavailableError,
    IndexingError,
    IndexPersistenceError,
    QueryEmbeddingError,
)
from memox.domain.ports.embeddings import EmbeddingsPort
from memox.domain.ports.rag import CodeChunk, ScoredChunk

logger = logging.getLogger(__name__)

INDEX_SCHEMA_VERSION = 1


class StoredChunk(CodeChunk):
    """Chunk as persisted: sequential id plus a non-empty embedding."""

    id: int
    embedding: list[float]


class JsonVectorStore:
    """Persisted chunk index searched by linear cosine scan."""

    def __init__(
        self,
        index_path: Path | str,
        embeddings: EmbeddingsPort,
        batch_size: int = 64,
        embed_timeout: float | None = None,
    ) -> None:
        self._path = Path(index_path)
        self._embeddings = embeddings
        self._batch_size = max(1, batch_size)
        self._embed_timeout = embed_timeout
        self._entries: list[StoredChunk] = []
        self._positions: dict[tuple[str, int, int, str], int] = {}
        self._dimension: int | None = None
        self._model: str | None = None
        self._next_id = 0
        self._loaded = False
        self._write_lock = asyncio.Lock()
        self._matrix: np.ndarray | None = None
        self._matrix_source: list[StoredChunk] | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def dimension(self) -> int | None:
        return self._dimension

    def count(self) -> int:
        return len(self._entries)

    def indexed_files(self) -> list[str]:
        """Sorted distinct filenames present in the index."""
        return sorted({e.metadata.filename for e in self._entries})

    def stats(self) -> dict:
        return {
            "total_chunks": len(self._entries),
            "files": len(self.indexed_files()),
            "dimension": self._dimension,
            "embedding_model": self._model,
            "index_path": str(self._path),
            "schema_version": INDEX_SCHEMA_VERSION,
        }

    # -- persistence -------------------------------------------------------

    def _read_document(self) -> dict | None:
        if not self._path.exists():
            return None
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to load index %s: %s, starting empty", self._path, e)
            return None

    def _write_document(self, document: dict) -> None:
        tmp_file = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_file.write_text(json.dumps(document), encoding="utf-8")
            tmp_file.replace(self._path)
        except OSError as e:
            if tmp_file.exists():
                tmp_file.unlink()
            raise IndexPersistenceError(f"Failed to write index {self._path}: {e}") from e

    @staticmethod
    def _build_document(entries: list[StoredChunk], dimension: int | None, next_id: int, model: str | None) -> dict:
        return {
            "schema_version": INDEX_SCHEMA_VERSION,
            "embedding_model": model,
            "dimension": dimension,
            "next_id": next_id,
            "chunks": [e.model_dump() for e in entries],
        }

    def _apply_document(self, data: dict | None) -> None:
        self._set_state([], None, 0)
        if data is None:
            return
        if not isinstance(data, dict) or not isinstance(data.get("chunks", []), list):
            logger.warning("Index %s is not an index document, starting empty", self._path)
            return
        version = data.get("schema_version")
        if version != INDEX_SCHEMA_VERSION:
            logger.warning(
                "Index %s has schema_version %r (expected %d), starting empty",
                self._path,
                version,
                INDEX_SCHEMA_VERSION,
            )
            return
        try:
            entries = [StoredChunk.model_validate(raw) for raw in data.get("chunks", [])]
        except ValidationError as e:
            logger.warning("Index %s is malformed: %s, starting empty", self._path, e)
            return

        dimension = data.get("dimension") or (len(entries[0].embedding) if entries else None)
        if any(len(e.embedding) != dimension for e in entries):
            logger.warning("Index %s has inconsistent vector sizes, starting empty", self._path)
            return

        next_id = max([data.get("next_id", 0), *(e.id + 1 for e in entries)])
        self._set_state(entries, dimension, next_id, data.get("embedding_model"))
        logger.info("Loaded index %s: %d chunks", self._path, len(entries))

    def _set_state(
        self,
        entries: list[StoredChunk],
        dimension: int | None,
        next_id: int,
        model: str | None = None,
    ) -> None:
        self._entries = entries
        self._positions = {e.identity(): i for i, e in enumerate(entries)}
        self._dimension = dimension if entries else None
        self._model = model if entries else None
        self._next_id = next_id
        self._matrix = None
        self._matrix_source = None

    async def load(self) -> None:
        """Read the persisted index into memory. Idempotent."""
        if self._loaded:
            return
        data = await asyncio.to_thread(self._read_document)
        if not self._loaded:
            self._apply_document(data)
            self._loaded = True

    async def _persist(
        self,
        entries: list[StoredChunk],
        dimension: int | None,
        next_id: int,
        model: str | None = None,
    ) -> None:
        document = self._build_document(entries, dimension, next_id, model)
        await asyncio.to_thread(self._write_document, document)

    # -- embedding model ---------------------------------------------------

    async def _active_model(self) -> str | None:
        # LazyEmbeddings only knows its model once the provider is resolved
        ensure_ready = getattr(self._embeddings, "ensure_ready", None)
        provider = await ensure_ready() if ensure_ready is not None else self._embeddings
        return getattr(provider, "model", None)

    async def reconcile_model(self) -> bool:
        """Drop the index if it was built by another embedding model.

        Vectors from different models are not comparable, so such an index is
        stale as a whole. Returns True if it was discarded.
        """
        await self.load()
        if not self._entries or self._model is None:
            return False
        try:
            model = await self._active_model()
        except EmbeddingsUnavailableError as e:
            logger.warning("Cannot check index embedding model: %s", e)
            return False
        if model is None or model == self._model:
            return False

        async with self._write_lock:
            if self._model is None or self._model == model:
                return False
            logger.warning(
                "Index %s was built with embedding model %s, provider is now %s; discarding %d chunks",
                self._path,
                self._model,
                model,
                len(self._entries),
            )
            await self._persist([], None, self._next_id)
            self._set_state([], None, self._next_id)
        return True

    # -- writes ------------------------------------------------------------

    async def _embed_all(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for i in range(0, len(texts), self._batch_size):
            vectors.extend(await self._embeddings.embed_batch(texts[i : i + self._batch_size]))
        if len(vectors) != len(texts):
            raise IndexingError(f"Embedding count mismatch: got {len(vectors)}, expected {len(texts)}")
        return vectors

    async def add_chunks(self, chunks: list[CodeChunk]) -> int:
        """Embed, append and persist chunks. Returns how many were new.

        A chunk identical to a stored one (same file, range and content) replaces
        it in place, keeping its id and rank position. Nothing is kept in memory
        unless the write to disk succeeded.
        """
        if not chunks:
            return 0
        await self.reconcile_model()

        try:
            vectors = await asyncio.wait_for(
                self._embed_all([c.content for c in chunks]),
                timeout=self._embed_timeout,
            )
        except asyncio.TimeoutError as e:
            raise IndexingError(f"Embedding timed out after {self._embed_timeout}s") from e
        model = await self._active_model()

        async with self._write_lock:
            dimension = self._dimension
            for vec in vectors:
                if not vec:
                    raise EmbeddingDimensionError("Embedding provider returned an empty vector")
                if dimension is None:
                    dimension = len(vec)
                elif len(vec) != dimension:
                    raise EmbeddingDimensionError(f"Vector size {len(vec)} does not match index dimension {dimension}")

            entries = list(self._entries)
            positions = dict(self._positions)
            next_id = self._next_id
            added = 0
            for chunk, vec in zip(chunks, vectors):
                key = chunk.identity()
                pos = positions.get(key)
                if pos is not None:
                    entries[pos] = StoredChunk(
                        id=entries[pos].id,
                        content=chunk.content,
                        metadata=chunk.metadata,
                        embedding=vec,
                    )
                    continue
                entries.append(StoredChunk(id=next_id, content=chunk.content, metadata=chunk.metadata, embedding=vec))
                positions[key] = len(entries) - 1
                next_id += 1
                added += 1

            model = self._model or model
            await self._persist(entries, dimension, next_id, model)
            self._set_state(entries, dimension, next_id, model)
        return added

    async def remove_files(self, filenames: set[str]) -> int:
        """Drop every chunk of the given files. Returns chunks removed."""
        await self.load()
        async with self._write_lock:
            kept = [e for e in self._entries if e.metadata.filename not in filenames]
            removed = len(self._entries) - len(kept)
            if removed:
                dimension = self._dimension if kept else None
                await self._persist(kept, dimension, self._next_id, self._model)
                self._set_state(kept, dimension, self._next_id, self._model)
        return removed

    async def remove_file(self, filename: str) -> int:
        return await self.remove_files({filename})

    async def clear(self) -> None:
        """Empty the index and persist the empty document."""
        await self.load()
        async with self._write_lock:
            await self._persist([], None, 0)
            self._set_state([], None, 0)

    # -- search ------------------------------------------------------------

    def _normalized_matrix(self, entries: list[StoredChunk]) -> np.ndarray:
        if self._matrix is not None and self._matrix_source is entries:
            return self._matrix
        matrix = np.asarray([e.embedding for e in entries], dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms[norms == 0] = 1.0  # zero vectors score 0
        matrix = matrix / norms
        self._matrix = matrix
        self._matrix_source = entries
        return matrix

    async def search(self, query: str, k: int = 5) -> list[ScoredChunk]:
        """Top-k chunks by cosine similarity to the query.

        Empty index or k <= 0 gives []; so does an index built by another
        embedding model, which is discarded (and logged) on first use.
        Failure to embed the query raises QueryEmbeddingError instead of
        returning nothing.
        """
        await self.load()
        if k <= 0 or not self._entries or await self.reconcile_model():
            return []
        entries = self._entries

        try:
            query_vec = await self._embeddings.embed(query)
        except Exception as e:
            raise QueryEmbeddingError(f"Failed to embed query: {e}") from e

        matrix = self._normalized_matrix(entries)
        if len(query_vec) != matrix.shape[1]:
            raise QueryEmbeddingError(
                f"Query vector size {len(query_vec)} does not match index dimension {matrix.shape[1]}"
            )

        q = np.asarray(query_vec, dtype=np.float64)
        norm = np.linalg.norm(q)
        scores = matrix @ (q / norm) if norm > 0 else np.zeros(len(entries))
        order = np.argsort(-scores, kind="stable")[:k]
        return [ScoredChunk(chunk=entries[i], score=float(scores[i])) for i in order]
