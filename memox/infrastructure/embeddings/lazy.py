"""Lazily initialized embeddings provider.

States:
- UNINITIALIZED: nothing loaded yet
- LOADING: one load task in flight; concurrent callers await the same task
- READY: provider resolved, calls are delegated
- FAILED: load raised; calls fail fast until reset()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from memox.domain.errors import EmbeddingsUnavailableError
from memox.domain.ports.embeddings import EmbeddingsPort

logger = logging.getLogger(__name__)


class EmbeddingsState(str, Enum):
    """Initialization state of a lazy provider."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class LazyEmbeddings:
    """EmbeddingsPort that resolves its real provider on first use."""

    def __init__(self, loader: Callable[[], Awaitable[EmbeddingsPort]], name: str = "embeddings") -> None:
        self._loader = loader
        self._name = name
        self._state = EmbeddingsState.UNINITIALIZED
        self._provider: EmbeddingsPort | None = None
        self._error: BaseException | None = None
        self._load_task: asyncio.Task | None = None

    @property
    def state(self) -> EmbeddingsState:
        return self._state

    @property
    def provider(self) -> EmbeddingsPort | None:
        return self._provider

    async def ensure_ready(self) -> EmbeddingsPort:
        """Load the provider once; every caller gets the same instance or error."""
        if self._state is EmbeddingsState.READY and self._provider is not None:
            return self._provider
        if self._state is EmbeddingsState.FAILED:
            raise EmbeddingsUnavailableError(f"{self._name} failed to load: {self._error}") from self._error
        if self._load_task is None:
            self._state = EmbeddingsState.LOADING
            self._load_task = asyncio.ensure_future(self._load())
        try:
            return await asyncio.shield(self._load_task)
        except EmbeddingsUnavailableError:
            raise
        except Exception as e:
            raise EmbeddingsUnavailableError(f"{self._name} failed to load: {e}") from e

    async def _load(self) -> EmbeddingsPort:
        try:
            provider = await self._loader()
        except Exception as e:
            self._state = EmbeddingsState.FAILED
            self._error = e
            logger.error("Embeddings provider %s failed to load: %s", self._name, e)
            raise
        self._provider = provider
        self._state = EmbeddingsState.READY
        logger.info("Embeddings provider ready: %s", getattr(provider, "model", type(provider).__name__))
        return provider

    def reset(self) -> None:
        """Allow a new load attempt after FAILED. No-op while loading."""
        if self._state is EmbeddingsState.LOADING:
            return
        self._state = EmbeddingsState.UNINITIALIZED
        self._provider = None
        self._error = None
        self._load_task = None

    async def embed(self, text: str) -> list[float]:
        provider = await self.ensure_ready()
        return await provider.embed(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        provider = await self.ensure_ready()
        return await provider.embed_batch(texts)

    def get_stats(self) -> dict:
        """State summary for status endpoints."""
        return {
            "name": self._name,
            "state": self._state.value,
            "model": getattr(self._provider, "model", None),
            "error": str(self._error) if self._error else None,
        }
