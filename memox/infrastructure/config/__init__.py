"""Configuration loading."""

from memox.infrastructure.config.toml_loader import load_config

__all__ = ["load_config"]
