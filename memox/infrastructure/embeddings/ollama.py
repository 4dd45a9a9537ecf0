"""Ollama embeddings adapter - POST /api/embed."""

from typing import Any

from memox.domain.ports.config import EmbeddingsConfig, OllamaConfig
from memox.infrastructure.embeddings.http import HTTPEmbeddingsAdapter


class OllamaEmbeddingsAdapter(HTTPEmbeddingsAdapter):
    """Ollama embeddings via POST /api/embed."""

    provider = "Ollama"
    embed_path = "/api/embed"

    def __init__(self, config: OllamaConfig, embeddings_config: EmbeddingsConfig) -> None:
        super().__init__(config.host, embeddings_config.model, config.timeout)

    def _extract(self, data: dict[str, Any]) -> list[list[float]]:
        return data.get("embeddings", [])

    async def is_available(self) -> bool:
        """Check that the server answers and has the embedding model pulled."""
        tags = await self._probe("/api/tags")
        if tags is None:
            return False
        # "nomic-embed-text" is listed as "nomic-embed-text:latest"
        names = {m.get("name", "") for m in tags.get("models", [])}
        return any(n == self._model or n.split(":")[0] == self._model for n in names)
