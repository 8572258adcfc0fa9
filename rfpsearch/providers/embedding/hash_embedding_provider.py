"""Deterministic pseudo-embeddings derived from an MD5 digest.

Used when no model backend is installed or when ``EMBEDDING_BACKEND=hash``.
Vectors carry no semantic meaning, but the same text and dimension always
produce a bit-identical vector, which keeps the whole pipeline runnable
offline and in tests.

Component ``i`` is the digest byte ``i mod 16`` scaled from [0, 255] into
[-1, 1], i.e. ``(byte / 255 - 0.5) * 2``.
"""

from __future__ import annotations

import hashlib

import numpy as np

from rfpsearch.interfaces.embedding_provider import IEmbeddingProvider

_MODEL_NAME = "md5-pseudo-embedding"


def hash_embedding(text: str, dimension: int) -> list[float]:
    """Return the pseudo-embedding of *text* with *dimension* components."""
    digest = np.frombuffer(hashlib.md5(text.encode("utf-8")).digest(), dtype=np.uint8)
    values = digest[np.arange(dimension) % digest.size].astype(np.float64) / 255.0
    return ((values - 0.5) * 2.0).tolist()


class HashEmbeddingProvider(IEmbeddingProvider):
    """Always-available embedding backend with reproducible output."""

    def __init__(self, dimension: int = 384) -> None:
        self._dimension = dimension

    async def load(self) -> None:
        return None

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [hash_embedding(t, self._dimension) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return hash_embedding(text, self._dimension)

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return _MODEL_NAME

    def get_provider_name(self) -> str:
        return "hash"

    def is_available(self) -> bool:
        return True
