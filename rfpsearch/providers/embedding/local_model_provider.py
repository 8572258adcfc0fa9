"""Shared plumbing for embedding backends that run a model in-process.

Subclasses name the library they need and implement two hooks:

    _create_model()   -- build the model object (may download weights)
    _encode(batch)    -- turn at most ``batch_limit`` texts into vectors

Everything else (lazy load, thread offload, batching, error wrapping) lives
here.  Model calls are CPU-bound, so they always run in a worker thread via
:func:`asyncio.to_thread`.
"""

from __future__ import annotations

import asyncio
import importlib.util
from typing import Any, ClassVar

import structlog

from rfpsearch.interfaces.embedding_provider import IEmbeddingProvider
from rfpsearch.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class LocalModelEmbeddingProvider(IEmbeddingProvider):
    """Base class for fastembed / sentence-transformers providers."""

    provider_name: ClassVar[str] = ""
    library: ClassVar[str] = ""
    known_dimensions: ClassVar[dict[str, int]] = {}
    batch_limit: ClassVar[int] = 64

    def __init__(self, model_name: str | None = None) -> None:
        self._model_name = model_name or DEFAULT_MODEL
        self._dimension = self.known_dimensions.get(self._model_name, 384)
        self._model: Any = None

    # -- hooks -------------------------------------------------------------

    def _create_model(self) -> Any:
        raise NotImplementedError

    def _encode(self, batch: list[str]) -> list[list[float]]:
        raise NotImplementedError

    # -- sync internals (worker thread) ------------------------------------

    def _ensure_model(self) -> None:
        if self._model is not None:
            return
        logger.info("embedding_model_loading", backend=self.provider_name, model=self._model_name)
        try:
            self._model = self._create_model()
        except Exception as exc:
            raise EmbeddingError(
                message=f"Failed to load {self.provider_name} model '{self._model_name}': {exc}",
                provider_name=self.provider_name,
            ) from exc
        logger.info(
            "embedding_model_loaded",
            backend=self.provider_name,
            model=self._model_name,
            dimension=self._dimension,
        )

    def _embed_all(self, texts: list[str]) -> list[list[float]]:
        self._ensure_model()
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_limit):
            batch = texts[start : start + self.batch_limit]
            vectors.extend(self._encode(batch))
            logger.debug("embedding_model_batch", backend=self.provider_name, size=len(batch))
        return vectors

    # -- IEmbeddingProvider ------------------------------------------------

    async def load(self) -> None:
        await asyncio.to_thread(self._ensure_model)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._embed_all, texts)
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(
                message=f"{self.provider_name} embedding error: {exc}",
                provider_name=self.provider_name,
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        (vector,) = await self.embed([text])
        return vector

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._model_name

    def get_provider_name(self) -> str:
        return self.provider_name

    def is_available(self) -> bool:
        """True when the backend library can be imported; nothing is loaded."""
        return importlib.util.find_spec(self.library) is not None

    async def close(self) -> None:
        self._model = None
