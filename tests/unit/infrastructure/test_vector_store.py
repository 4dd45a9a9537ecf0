"""Tests for JsonVectorStore - persistence, ranking, duplicate policy."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from memox.domain.errors import (
    EmbeddingDimensionError,
    IndexingError,
    IndexPersistenceError,
    QueryEmbeddingError,
)
from memox.domain.ports.rag import ChunkMetadata, CodeChunk
from memox.infrastructure.embeddings.hashing import HashingEmbeddingsAdapter
from memox.infrastructure.rag.vector_store import INDEX_SCHEMA_VERSION, JsonVectorStore


class StaticEmbeddings:
    """Returns fixed vectors per text; unknown texts map to ``default``."""

    def __init__(self, vectors: dict[str, list[float]], default: list[float] | None = None):
        self.vectors = vectors
        self.default = default or [0.0, 0.0, 1.0]

    async def embed(self, text: str) -> list[float]:
        return self.vectors.get(text, self.default)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.vectors.get(t, self.default) for t in texts]


def _chunk(content: str, filename: str = "a.py", start: int = 1, end: int = 1) -> CodeChunk:
    return CodeChunk(content=content, metadata=ChunkMetadata(filename=filename, start_line=start, end_line=end))


@pytest.fixture
def index_path(tmp_path):
    return tmp_path / "store" / "code_index.json"


@pytest.fixture
def embeddings():
    return StaticEmbeddings(
        {
            "alpha": [1.0, 0.0, 0.0],
            "beta": [0.0, 1.0, 0.0],
            "mostly alpha": [0.9, 0.1, 0.0],
            "query alpha": [1.0, 0.0, 0.0],
        }
    )


class TestAddAndSearch:
    """add_chunks + search."""

    @pytest.mark.asyncio
    async def test_search_ranks_by_cosine(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("beta", start=1), _chunk("alpha", start=2, end=2), _chunk("mostly alpha", start=3, end=3)])

        hits = await store.search("query alpha", k=3)

        assert [h.chunk.content for h in hits] == ["alpha", "mostly alpha", "beta"]
        assert hits[0].score == pytest.approx(1.0)
        assert hits[0].score >= hits[1].score >= hits[2].score

    @pytest.mark.asyncio
    async def test_search_returns_at_most_k(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha", start=i, end=i) for i in range(1, 11)])
        assert len(await store.search("query alpha", k=3)) == 3
        assert len(await store.search("query alpha", k=50)) == 10

    @pytest.mark.asyncio
    async def test_ties_keep_insertion_order(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha", filename=name) for name in ("c.py", "a.py", "b.py")])
        hits = await store.search("query alpha", k=3)
        assert [h.chunk.metadata.filename for h in hits] == ["c.py", "a.py", "b.py"]

    @pytest.mark.asyncio
    async def test_empty_index_does_not_embed_query(self, index_path):
        provider = StaticEmbeddings({})
        provider.embed = AsyncMock(return_value=[1.0])
        store = JsonVectorStore(index_path, provider)

        assert await store.search("anything") == []
        provider.embed.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_positive_k(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha")])
        assert await store.search("query alpha", k=0) == []
        assert await store.search("query alpha", k=-1) == []

    @pytest.mark.asyncio
    async def test_add_empty_list(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        assert await store.add_chunks([]) == 0
        assert not index_path.exists()

    @pytest.mark.asyncio
    async def test_batches_embedding_requests(self, index_path):
        provider = HashingEmbeddingsAdapter(16)
        provider.embed_batch = AsyncMock(side_effect=lambda texts: [[1.0] + [0.0] * 15 for _ in texts])
        store = JsonVectorStore(index_path, provider, batch_size=2)

        await store.add_chunks([_chunk(f"c{i}", start=i, end=i) for i in range(1, 6)])

        assert provider.embed_batch.await_count == 3
        assert store.count() == 5


class TestDuplicates:
    """Re-adding an identical chunk replaces it in place."""

    @pytest.mark.asyncio
    async def test_readd_keeps_count_and_id(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        assert await store.add_chunks([_chunk("alpha"), _chunk("beta", start=2, end=2)]) == 2
        first = await store.search("query alpha", k=1)

        assert await store.add_chunks([_chunk("alpha")]) == 0

        assert store.count() == 2
        again = await store.search("query alpha", k=1)
        assert again[0].chunk.id == first[0].chunk.id

    @pytest.mark.asyncio
    async def test_same_content_different_range_is_new(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha", start=1, end=1)])
        assert await store.add_chunks([_chunk("alpha", start=5, end=5)]) == 1
        assert store.count() == 2


class TestDimensionChecks:
    """Vectors from different embedding spaces are rejected."""

    @pytest.mark.asyncio
    async def test_add_with_other_dimension_rejected(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha")])

        other = JsonVectorStore(index_path, StaticEmbeddings({}, default=[1.0, 0.0]))
        with pytest.raises(EmbeddingDimensionError):
            await other.add_chunks([_chunk("short", start=3, end=3)])
        assert other.count() == 1

    @pytest.mark.asyncio
    async def test_empty_vector_rejected(self, index_path):
        store = JsonVectorStore(index_path, StaticEmbeddings({"x": []}))
        with pytest.raises(EmbeddingDimensionError):
            await store.add_chunks([_chunk("x")])
        assert store.count() == 0

    @pytest.mark.asyncio
    async def test_query_dimension_mismatch(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha")])
        embeddings.vectors["odd"] = [1.0, 0.0]
        with pytest.raises(QueryEmbeddingError):
            await store.search("odd")


class TestFailures:
    """Errors surface instead of looking like an empty result."""

    @pytest.mark.asyncio
    async def test_query_embedding_failure_raises(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha")])
        embeddings.embed = AsyncMock(side_effect=RuntimeError("model gone"))

        with pytest.raises(QueryEmbeddingError, match="model gone"):
            await store.search("query alpha")

    @pytest.mark.asyncio
    async def test_embed_timeout(self, index_path):
        async def slow(texts):
            await asyncio.sleep(1)
            return [[1.0] for _ in texts]

        provider = StaticEmbeddings({})
        provider.embed_batch = slow
        store = JsonVectorStore(index_path, provider, embed_timeout=0.01)

        with pytest.raises(IndexingError, match="timed out"):
            await store.add_chunks([_chunk("alpha")])
        assert store.count() == 0

    @pytest.mark.asyncio
    async def test_write_failure_leaves_memory_unchanged(self, tmp_path, embeddings):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        store = JsonVectorStore(blocker / "code_index.json", embeddings)

        with pytest.raises(IndexPersistenceError):
            await store.add_chunks([_chunk("alpha")])
        assert store.count() == 0
        assert store.dimension is None


class TestPersistence:
    """JSON document on disk."""

    @pytest.mark.asyncio
    async def test_document_format(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha", start=3, end=7)])

        data = json.loads(index_path.read_text())
        assert data["schema_version"] == INDEX_SCHEMA_VERSION
        assert data["dimension"] == 3
        assert data["chunks"][0]["metadata"] == {"filename": "a.py", "start_line": 3, "end_line": 7}
        assert data["chunks"][0]["embedding"] == [1.0, 0.0, 0.0]
        assert not index_path.with_suffix(".json.tmp").exists()

    @pytest.mark.asyncio
    async def test_reload_gives_same_results(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("beta"), _chunk("alpha", start=2, end=2)])
        before = await store.search("query alpha", k=2)

        reloaded = JsonVectorStore(index_path, embeddings)
        await reloaded.load()
        after = await reloaded.search("query alpha", k=2)

        assert reloaded.count() == 2
        assert [h.chunk.id for h in after] == [h.chunk.id for h in before]
        assert [h.score for h in after] == pytest.approx([h.score for h in before])

    @pytest.mark.asyncio
    async def test_ids_continue_after_reload(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha"), _chunk("beta", start=2, end=2)])

        reloaded = JsonVectorStore(index_path, embeddings)
        await reloaded.add_chunks([_chunk("mostly alpha", start=3, end=3)])

        data = json.loads(index_path.read_text())
        assert [c["id"] for c in data["chunks"]] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_unknown_schema_version_starts_empty(self, index_path, embeddings):
        index_path.parent.mkdir(parents=True)
        index_path.write_text(json.dumps({"schema_version": 99, "chunks": []}))
        store = JsonVectorStore(index_path, embeddings)
        await store.load()
        assert store.count() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content",
        ["{not json", "[]", "null", '"x"', '{"schema_version": 1, "chunks": {"a": 1}}'],
    )
    async def test_corrupt_file_starts_empty(self, index_path, embeddings, content):
        index_path.parent.mkdir(parents=True)
        index_path.write_text(content)
        store = JsonVectorStore(index_path, embeddings)
        await store.load()
        assert store.count() == 0
        await store.add_chunks([_chunk("alpha")])
        assert store.count() == 1



class TestEmbeddingModel:
    """An index is only valid for the model that embedded it."""

    @pytest.mark.asyncio
    async def test_model_recorded(self, index_path):
        store = JsonVectorStore(index_path, HashingEmbeddingsAdapter(16))
        await store.add_chunks([_chunk("alpha")])

        assert json.loads(index_path.read_text())["embedding_model"] == "hashing-16"
        assert store.stats()["embedding_model"] == "hashing-16"

    @pytest.mark.asyncio
    async def test_other_model_discards_index(self, index_path):
        await JsonVectorStore(index_path, HashingEmbeddingsAdapter(16)).add_chunks([_chunk("alpha")])

        store = JsonVectorStore(index_path, HashingEmbeddingsAdapter(32))
        assert await store.search("alpha") == []
        assert store.count() == 0
        assert json.loads(index_path.read_text())["chunks"] == []

        await store.add_chunks([_chunk("alpha")])
        hits = await store.search("alpha")
        assert [h.chunk.content for h in hits] == ["alpha"]
        assert store.dimension == 32

    @pytest.mark.asyncio
    async def test_add_with_other_model_starts_over(self, index_path):
        await JsonVectorStore(index_path, HashingEmbeddingsAdapter(16)).add_chunks(
            [_chunk("alpha"), _chunk("beta", start=2, end=2)]
        )

        store = JsonVectorStore(index_path, HashingEmbeddingsAdapter(32))
        await store.add_chunks([_chunk("gamma", filename="b.py")])

        assert store.indexed_files() == ["b.py"]
        assert json.loads(index_path.read_text())["embedding_model"] == "hashing-32"

    @pytest.mark.asyncio
    async def test_same_model_keeps_index(self, index_path):
        await JsonVectorStore(index_path, HashingEmbeddingsAdapter(16)).add_chunks([_chunk("alpha")])

        store = JsonVectorStore(index_path, HashingEmbeddingsAdapter(16))
        assert len(await store.search("alpha")) == 1

    @pytest.mark.asyncio
    async def test_provider_without_model_name_is_not_checked(self, index_path, embeddings):
        await JsonVectorStore(index_path, HashingEmbeddingsAdapter(3)).add_chunks([_chunk("alpha")])

        store = JsonVectorStore(index_path, embeddings)
        assert await store.reconcile_model() is False
        assert store.count() == 1


class TestRemoval:
    """remove_files / clear."""

    @pytest.mark.asyncio
    async def test_remove_files(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha", filename="a.py"), _chunk("beta", filename="b.py")])

        assert await store.remove_files({"a.py"}) == 1

        assert store.indexed_files() == ["b.py"]
        reloaded = JsonVectorStore(index_path, embeddings)
        await reloaded.load()
        assert reloaded.indexed_files() == ["b.py"]

    @pytest.mark.asyncio
    async def test_remove_unknown_file(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha")])
        assert await store.remove_file("zzz.py") == 0
        assert store.count() == 1

    @pytest.mark.asyncio
    async def test_clear(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha")])
        await store.clear()

        assert store.count() == 0
        assert store.dimension is None
        assert await store.search("query alpha") == []
        assert json.loads(index_path.read_text())["chunks"] == []

    @pytest.mark.asyncio
    async def test_stats(self, index_path, embeddings):
        store = JsonVectorStore(index_path, embeddings)
        await store.add_chunks([_chunk("alpha", filename="a.py"), _chunk("beta", filename="b.py")])
        stats = store.stats()
        assert stats["total_chunks"] == 2
        assert stats["files"] == 2
        assert stats["dimension"] == 3
