"""Memox - workspace code retrieval for grounded LLM answers."""

__version__ = "0.1.0"
