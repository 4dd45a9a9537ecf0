"""Shared plumbing for embedding servers reached over HTTP.

Subclasses name the endpoint and how to pull vectors out of the response;
the request, retry policy and error logging live here.
"""

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 5.0


class HTTPEmbeddingsAdapter:
    """Batch embeddings from a JSON-over-HTTP server."""

    provider = "http"
    embed_path = "/embed"

    def __init__(self, base_url: str, model: str, timeout: float, headers: dict[str, str] | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._headers = dict(headers or {})

    @property
    def model(self) -> str:
        return self._model

    def _extract(self, data: dict[str, Any]) -> list[list[float]]:
        raise NotImplementedError

    async def _probe(self, path: str) -> dict[str, Any] | None:
        """GET a cheap endpoint; None when the server is unreachable or errors."""
        try:
            async with httpx.AsyncClient(timeout=PROBE_TIMEOUT) as client:
                resp = await client.get(f"{self._base_url}{path}", headers=self._headers)
                resp.raise_for_status()
                return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.info("%s not available at %s: %s", self.provider, self._base_url, e)
            return None

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        result = await self.embed_batch([text])
        return result[0] if result else []

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed multiple texts in one request.

        Retries up to 3 times with exponential backoff on timeouts and network
        errors. Raises ValueError when the server returns a different number of
        vectors than texts sent; a padded batch would silently corrupt the index.
        """
        if not texts:
            return []

        url = f"{self._base_url}{self.embed_path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json={"model": self._model, "input": texts}, headers=self._headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("%s embedding error %s: %s", self.provider, e.response.status_code, e.response.text[:200])
            raise
        except httpx.TimeoutException:
            logger.warning("%s embedding timed out after %ss", self.provider, self._timeout)
            raise
        except httpx.NetworkError as e:
            logger.warning("%s network error: %s", self.provider, e)
            raise

        vectors = self._extract(data)
        if len(vectors) != len(texts):
            raise ValueError(f"Embedding count mismatch: got {len(vectors)}, expected {len(texts)}")
        return vectors
