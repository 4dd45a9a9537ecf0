"""Workspace index adapters: chunker, vector store, incremental state."""

from memox.infrastructure.rag.chunker import chunk_file, chunk_lines
from memox.infrastructure.rag.index_state import IndexState
from memox.infrastructure.rag.vector_store import JsonVectorStore, StoredChunk

__all__ = ["IndexState", "JsonVectorStore", "StoredChunk", "chunk_file", "chunk_lines"]
