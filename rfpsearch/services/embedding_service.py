"""Embedding generation with an explicit lifecycle and per-item failure isolation.

The service is constructed once at process start, initialized, and passed
to every caller (ingestion worker, search engine) by reference.  It wraps
one primary :class:`IEmbeddingProvider` and, optionally, a fallback that is
switched in when the primary cannot load -- normally the deterministic
hash provider, so the pipeline keeps working without a model download.

Lifecycle::

    service = EmbeddingService(provider, fallback=HashEmbeddingProvider(384))
    await service.initialize()     # loads the model, or switches to fallback
    ...
    await service.shutdown()

Batch embedding never raises for a single bad input: each result carries
either a vector or an error message, in the original input order.
"""

from __future__ import annotations

import asyncio

import structlog

from rfpsearch.interfaces.embedding_provider import IEmbeddingProvider
from rfpsearch.models.embedding import EmbeddingResult, ModelMetadata
from rfpsearch.utils.concurrency import throttled_gather
from rfpsearch.utils.errors import (
    DimensionMismatchError,
    EmbeddingError,
    InvalidInputError,
    RFPSearchError,
)

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_BATCH_SIZE = 32
_DEFAULT_CONCURRENCY = 2


class EmbeddingService:
    """Generates fixed-dimension vectors for chunk texts and search queries.

    Parameters
    ----------
    provider:
        Primary embedding backend.
    fallback:
        Backend used when *provider* fails to load.  ``None`` makes a load
        failure fatal.
    dimension:
        Vector length every output must have.
    model_version:
        Version string persisted with each embedding.
    batch_size:
        Default sub-batch size for :meth:`embed_batch`.
    max_concurrency:
        Maximum sub-batches in flight against the model at once.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        fallback: IEmbeddingProvider | None = None,
        dimension: int = 384,
        model_version: str = "1.0.0",
        batch_size: int = _DEFAULT_BATCH_SIZE,
        max_concurrency: int = _DEFAULT_CONCURRENCY,
    ) -> None:
        self._primary = provider
        self._fallback = fallback
        self._active: IEmbeddingProvider = provider
        self._dimension = dimension
        self._model_version = model_version
        self._batch_size = batch_size
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))
        self._ready = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load the primary model, switching to the fallback if that fails.

        Raises
        ------
        EmbeddingError
            If the primary cannot load and no fallback is configured.
        """
        if self._ready:
            return

        try:
            if not self._primary.is_available():
                raise EmbeddingError(
                    message="backend library is not installed",
                    provider_name=self._primary.get_provider_name(),
                )
            await self._primary.load()
            self._active = self._primary
        except EmbeddingError as exc:
            if self._fallback is None:
                raise
            logger.warning(
                "embedding_backend_fallback",
                primary=self._primary.get_provider_name(),
                fallback=self._fallback.get_provider_name(),
                error=str(exc),
            )
            await self._fallback.load()
            self._active = self._fallback

        if self._active.get_dimension() != self._dimension:
            logger.warning(
                "embedding_dimension_differs",
                backend=self._active.get_provider_name(),
                model_dimension=self._active.get_dimension(),
                configured_dimension=self._dimension,
            )

        self._ready = True
        logger.info(
            "embedding_service_ready",
            backend=self._active.get_provider_name(),
            model=self._active.get_model_name(),
            dimension=self._dimension,
        )

    async def shutdown(self) -> None:
        """Release model resources.  The service must be re-initialized before reuse."""
        if not self._ready:
            return
        await self._active.close()
        self._ready = False
        logger.info("embedding_service_stopped", backend=self._active.get_provider_name())

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def get_model_metadata(self) -> ModelMetadata:
        """Return the provenance persisted with every embedding write."""
        return ModelMetadata(
            name=self._active.get_model_name(),
            version=self._model_version,
            dimension=self._dimension,
            backend=self._active.get_provider_name(),
        )

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Embed one text.

        Raises
        ------
        InvalidInputError
            If *text* is not a non-blank string.
        DimensionMismatchError
            If the model returns a vector of the wrong length.
        EmbeddingError
            If the service is not ready or the model call fails.
        """
        self._check_text(text)
        self._check_ready()
        async with self._semaphore:
            vector = await self._active.embed_single(text)
        return self._check_dimension(vector)

    async def embed_batch(
        self,
        texts: list[str],
        batch_size: int | None = None,
    ) -> list[EmbeddingResult]:
        """Embed many texts, isolating failures to the items that caused them.

        Parameters
        ----------
        texts:
            Input texts.
        batch_size:
            Sub-batch size; defaults to the service setting.

        Returns
        -------
        list[EmbeddingResult]
            One result per input in input order, each holding either an
            embedding or an error message.
        """
        if not isinstance(texts, list):
            raise InvalidInputError(message="embed_batch expects a list of strings")
        if not texts:
            return []
        self._check_ready()

        size = max(1, batch_size or self._batch_size)
        batches = [
            list(range(start, min(start + size, len(texts))))
            for start in range(0, len(texts), size)
        ]

        outcomes = await throttled_gather(
            [self._embed_sub_batch(texts, indices) for indices in batches],
            semaphore=self._semaphore,
            return_exceptions=False,
        )
        results = [result for batch_results in outcomes for result in batch_results]

        succeeded = sum(1 for r in results if r.ok)
        logger.info(
            "embedding_batch_complete",
            total=len(texts),
            succeeded=succeeded,
            failed=len(texts) - succeeded,
            batches=len(batches),
            backend=self._active.get_provider_name(),
        )
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _embed_sub_batch(self, texts: list[str], indices: list[int]) -> list[EmbeddingResult]:
        """Embed one sub-batch; on a batch-level failure retry item by item."""
        results: dict[int, EmbeddingResult] = {}
        valid: list[int] = []
        for i in indices:
            try:
                self._check_text(texts[i])
                valid.append(i)
            except InvalidInputError as exc:
                results[i] = self._failure(i, texts[i], exc)

        if valid:
            try:
                vectors = await self._active.embed([texts[i] for i in valid])
                if len(vectors) != len(valid):
                    raise EmbeddingError(
                        message=f"model returned {len(vectors)} vectors for {len(valid)} inputs",
                        provider_name=self._active.get_provider_name(),
                    )
                for i, vector in zip(valid, vectors):
                    results[i] = self._from_vector(i, texts[i], vector)
            except Exception as exc:
                logger.warning(
                    "embedding_sub_batch_failed",
                    size=len(valid),
                    first_index=valid[0],
                    error=str(exc),
                )
                for i in valid:
                    results[i] = await self._embed_one(i, texts[i])

        return [results[i] for i in indices]

    async def _embed_one(self, index: int, text: str) -> EmbeddingResult:
        try:
            vector = await self._active.embed_single(text)
        except Exception as exc:
            return self._failure(index, text, exc)
        return self._from_vector(index, text, vector)

    def _from_vector(self, index: int, text: str, vector: list[float]) -> EmbeddingResult:
        try:
            checked = self._check_dimension(vector)
        except DimensionMismatchError as exc:
            return self._failure(index, text, exc)
        return EmbeddingResult(index=index, text=text, embedding=checked)

    @staticmethod
    def _failure(index: int, text: str, exc: Exception) -> EmbeddingResult:
        message = exc.message if isinstance(exc, RFPSearchError) else str(exc)
        logger.debug("embedding_item_failed", index=index, error=message)
        return EmbeddingResult(index=index, text=text, embedding=None, error=message)

    def _check_ready(self) -> None:
        if not self._ready:
            raise EmbeddingError(message="Embedding service is not initialized")

    def _check_dimension(self, vector: list[float]) -> list[float]:
        if len(vector) != self._dimension:
            raise DimensionMismatchError(
                message=f"Expected dimension {self._dimension}, got {len(vector)}",
                provider_name=self._active.get_provider_name(),
            )
        return [float(v) for v in vector]

    @staticmethod
    def _check_text(text: str) -> None:
        if not isinstance(text, str) or not text.strip():
            raise InvalidInputError(message="embedding input must be a non-empty string")
