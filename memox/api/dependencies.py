"""FastAPI dependencies - rate limiter and container accessors."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from memox.api.container import get_container
from memox.application.indexing.coordinator import IndexCoordinator
from memox.domain.ports.config import AppConfig

limiter = Limiter(key_func=get_remote_address)


def get_config() -> AppConfig:
    """Config of the global container (loaded once)."""
    return get_container().config


def get_coordinator() -> IndexCoordinator:
    """Index coordinator for the configured workspace."""
    return get_container().coordinator


def default_rate_limit() -> str:
    """Per-client limit for routes without a tighter fixed one."""
    return f"{get_config().security.rate_limit_requests_per_minute}/minute"
