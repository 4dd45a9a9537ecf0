"""OpenAI-compatible embeddings - LM Studio, vLLM, LocalAI via POST /v1/embeddings."""

from typing import Any

from memox.domain.ports.config import EmbeddingsConfig, OpenAICompatibleConfig
from memox.infrastructure.embeddings.http import HTTPEmbeddingsAdapter


class OpenAICompatibleEmbeddingsAdapter(HTTPEmbeddingsAdapter):
    """LM Studio, vLLM, LocalAI embeddings via POST /v1/embeddings."""

    provider = "OpenAI-compatible server"
    embed_path = "/embeddings"

    def __init__(
        self,
        config: OpenAICompatibleConfig,
        embeddings_config: EmbeddingsConfig,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        super().__init__(config.base_url, embeddings_config.model, config.timeout, headers)

    def _extract(self, data: dict[str, Any]) -> list[list[float]]:
        # data[].embedding, possibly out of order
        items = sorted(data.get("data", []), key=lambda x: x.get("index", 0))
        return [item.get("embedding", []) for item in items]

    async def is_available(self) -> bool:
        """GET /models answers."""
        return await self._probe("/models") is not None
