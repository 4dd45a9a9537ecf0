"""Local token-hashing embeddings - no model server required.

Each identifier-like token is hashed into one of ``dimension`` buckets and
weighted by 1 + log(count); the vector is L2-normalized. Cosine similarity
between two such vectors approximates their token overlap, which makes this a
usable fallback when no embedding model is reachable, and a deterministic
provider for tests.
"""

import hashlib
import math
import re
from collections import Counter

import numpy as np

_TOKEN_RE = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    """Lowercased word tokens (letters, digits, underscore)."""
    return _TOKEN_RE.findall(text.lower())


def _bucket(token: str, dimension: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "little") % dimension


class HashingEmbeddingsAdapter:
    """Deterministic bag-of-tokens embeddings."""

    def __init__(self, dimension: int = 512) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    @property
    def model(self) -> str:
        return f"hashing-{self._dimension}"

    @property
    def dimension(self) -> int:
        return self._dimension

    def _vector(self, text: str) -> list[float]:
        vec = np.zeros(self._dimension, dtype=np.float64)
        for token, count in Counter(tokenize(text)).items():
            vec[_bucket(token, self._dimension)] += 1.0 + math.log(count)
        norm = np.linalg.norm(vec)
        if norm > 0:
            vec /= norm
        return vec.tolist()

    async def is_available(self) -> bool:
        return True

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        return self._vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed multiple texts."""
        return [self._vector(t) for t in texts]
