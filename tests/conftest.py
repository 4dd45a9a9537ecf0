"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from memox.api import container as container_module
from memox.api.container import Container
from memox.api.dependencies import limiter
from memox.domain.ports.config import AppConfig, EmbeddingsConfig, RAGConfig


@pytest.fixture
def workspace(tmp_path) -> Path:
    """Small workspace with one Python module and one markdown file."""
    ws = tmp_path / "workspace"
    (ws / "src").mkdir(parents=True)
    (ws / "src" / "billing.py").write_text(
        "def calculate_invoice_total(items):\n"
        "    # calculate the invoice total\n"
        "    return sum(i.price for i in items)\n"
    )
    (ws / "README.md").write_text("# Demo\nA demo workspace for the index.\n")
    return ws


@pytest.fixture
def app_config(tmp_path, workspace) -> AppConfig:
    """Offline config: hashing embeddings, storage under tmp_path."""
    return AppConfig(
        embeddings=EmbeddingsConfig(provider="hashing", hashing_dimension=256),
        rag=RAGConfig(storage_dir=str(tmp_path / "storage"), workspace_roots=[str(workspace)]),
    )


@pytest.fixture
def container(app_config, monkeypatch) -> Container:
    """Swap the global DI container for one built from app_config."""
    c = Container(config=app_config)
    monkeypatch.setattr(container_module, "_container", c)
    monkeypatch.setattr(limiter, "enabled", False)
    return c


@pytest.fixture
async def client(container):
    """HTTP client bound to the ASGI app (no lifespan, no network)."""
    from memox.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
