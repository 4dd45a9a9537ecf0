"""Build the configured embeddings provider."""

import logging

from memox.domain.ports.config import AppConfig
from memox.domain.ports.embeddings import EmbeddingsPort
from memox.infrastructure.embeddings.hashing import HashingEmbeddingsAdapter
from memox.infrastructure.embeddings.lazy import LazyEmbeddings
from memox.infrastructure.embeddings.ollama import OllamaEmbeddingsAdapter
from memox.infrastructure.embeddings.openai_compatible import OpenAICompatibleEmbeddingsAdapter

logger = logging.getLogger(__name__)

PROVIDERS = ("auto", "ollama", "openai_compatible", "lm_studio", "hashing")


def create_embeddings(config: AppConfig) -> LazyEmbeddings:
    """Return a lazy provider; nothing touches the network until first embed."""
    provider = config.embeddings.provider.lower()
    if provider not in PROVIDERS:
        raise ValueError(f"Unknown embeddings provider: {provider!r} (expected one of {', '.join(PROVIDERS)})")

    async def load() -> EmbeddingsPort:
        if provider == "hashing":
            return HashingEmbeddingsAdapter(config.embeddings.hashing_dimension)
        if provider in ("openai_compatible", "lm_studio"):
            return OpenAICompatibleEmbeddingsAdapter(config.openai_compatible, config.embeddings)
        ollama = OllamaEmbeddingsAdapter(config.ollama, config.embeddings)
        if provider == "ollama":
            return ollama
        if await ollama.is_available():
            return ollama
        logger.warning(
            "Embedding model %s not available on %s, falling back to local token hashing",
            config.embeddings.model,
            config.ollama.host,
        )
        return HashingEmbeddingsAdapter(config.embeddings.hashing_dimension)

    return LazyEmbeddings(load, name=provider)
