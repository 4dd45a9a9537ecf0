"""Embeddings adapters - Ollama, OpenAI-compatible, local hashing."""

from memox.infrastructure.embeddings.factory import create_embeddings
from memox.infrastructure.embeddings.hashing import HashingEmbeddingsAdapter
from memox.infrastructure.embeddings.lazy import EmbeddingsState, LazyEmbeddings
from memox.infrastructure.embeddings.ollama import OllamaEmbeddingsAdapter
from memox.infrastructure.embeddings.openai_compatible import (
    OpenAICompatibleEmbeddingsAdapter,
)

__all__ = [
    "EmbeddingsState",
    "HashingEmbeddingsAdapter",
    "LazyEmbeddings",
    "OllamaEmbeddingsAdapter",
    "OpenAICompatibleEmbeddingsAdapter",
    "create_embeddings",
]
