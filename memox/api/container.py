"""Dependency Injection Container - centralized service management."""

from functools import cached_property

from memox.application.indexing.coordinator import IndexCoordinator, create_coordinator
from memox.domain.ports.config import AppConfig
from memox.domain.ports.filesystem import FileSystemPort
from memox.infrastructure.config import load_config
from memox.infrastructure.embeddings import LazyEmbeddings, create_embeddings
from memox.infrastructure.filesystem import LocalFileSystem


class Container:
    """Dependency Injection Container with lazy initialization.

    All dependencies are created on first access and cached. Creating the
    container never touches the network: the embeddings provider resolves
    itself on the first embed call.

    Usage:
        container = Container()
        coordinator = container.coordinator
    """

    def __init__(self, config: AppConfig | None = None):
        """Initialize container with optional config override."""
        self._config_override = config

    @cached_property
    def config(self) -> AppConfig:
        """Application configuration."""
        if self._config_override:
            return self._config_override
        return load_config()

    @cached_property
    def embeddings(self) -> LazyEmbeddings:
        """Embeddings provider selected by config.embeddings.provider."""
        return create_embeddings(self.config)

    @cached_property
    def fs(self) -> FileSystemPort:
        return LocalFileSystem()

    @cached_property
    def coordinator(self) -> IndexCoordinator:
        """Index coordinator for the configured workspace roots."""
        return create_coordinator(self.config.rag, self.embeddings, fs=self.fs)

    def reset(self) -> None:
        """Reset all cached instances (useful for testing)."""
        for attr in list(self.__dict__.keys()):
            if not attr.startswith("_"):
                delattr(self, attr)


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get or create global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Reset global container (for testing)."""
    global _container
    if _container:
        _container.reset()
    _container = None
