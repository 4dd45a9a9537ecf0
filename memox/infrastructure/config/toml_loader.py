"""TOML configuration loader with env overrides."""

import logging
import os
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any

from memox.domain.ports.config import (
    AppConfig,
    EmbeddingsConfig,
    OllamaConfig,
    OpenAICompatibleConfig,
    RAGConfig,
    SecurityConfig,
    ServerConfig,
)

logger = logging.getLogger(__name__)


def _load_toml(path: Path) -> dict:
    """Load TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _merge(base: dict, override: dict) -> dict:
    """Shallow-merge sections: tables are merged key by key, scalars replaced."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _path_list(value: str) -> list[str]:
    return [p.strip() for p in value.split(os.pathsep) if p.strip()]


def _comma_list(value: str) -> list[str]:
    return [v.strip() for v in value.split(",")]


# (variable, section, key, converter)
_ENV_OVERRIDES: list[tuple[str, str, str, Callable[[str], Any]]] = [
    ("OLLAMA_HOST", "ollama", "host", str.strip),
    ("OPENAI_BASE_URL", "openai_compatible", "base_url", str.strip),
    ("EMBEDDINGS_PROVIDER", "embeddings", "provider", lambda v: v.strip().lower()),
    ("EMBEDDINGS_MODEL", "embeddings", "model", str.strip),
    ("MEMOX_STORAGE_DIR", "rag", "storage_dir", str.strip),
    ("MEMOX_WORKSPACE_ROOTS", "rag", "workspace_roots", _path_list),
    ("PORT", "server", "port", int),
    ("LOG_LEVEL", "logging", "level", str.upper),
    ("LOG_FILE", "logging", "file", str.strip),
    ("CORS_ORIGINS", "security", "cors_origins", _comma_list),
    ("RATE_LIMIT_PER_MINUTE", "security", "rate_limit_requests_per_minute", int),
]


def _apply_env_overrides(config: dict) -> dict:
    """Apply environment variable overrides. Unparseable values are ignored."""
    for var, section, key, convert in _ENV_OVERRIDES:
        raw = os.getenv(var)
        if not raw:
            continue
        try:
            value = convert(raw)
        except ValueError:
            logger.warning("Invalid %s env value: %r, ignoring", var, raw)
            continue
        config.setdefault(section, {})[key] = value
    return config


def load_config(config_dir: Path | None = None) -> AppConfig:
    """Load configuration from TOML files with env overrides.

    Loads default.toml, then development.toml if exists.
    """
    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent.parent.parent / "config"

    config: dict = {}

    default_path = config_dir / "default.toml"
    if default_path.exists():
        config = _load_toml(default_path)

    dev_path = config_dir / "development.toml"
    if dev_path.exists():
        config = _merge(config, _load_toml(dev_path))

    config = _apply_env_overrides(config)

    logging_raw = config.get("logging") or {}

    return AppConfig(
        server=ServerConfig(**(config.get("server") or {})),
        ollama=OllamaConfig(**(config.get("ollama") or {})),
        openai_compatible=OpenAICompatibleConfig(**(config.get("openai_compatible") or {})),
        embeddings=EmbeddingsConfig(**(config.get("embeddings") or {})),
        security=SecurityConfig(**(config.get("security") or {})),
        rag=RAGConfig(**(config.get("rag") or {})),
        log_level=logging_raw.get("level", "INFO"),
        log_file=(logging_raw.get("file") or "").strip(),
        log_rotation_max_mb=int(logging_raw.get("log_rotation_max_mb", 5)),
        log_rotation_backups=int(logging_raw.get("log_rotation_backups", 3)),
    )
