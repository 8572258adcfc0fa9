"""Abstract base class for text-embedding backends.

Defines the contract for turning text into fixed-dimension vectors.
Implementations wrap FastEmbed (ONNX), Sentence Transformers (PyTorch) or
the deterministic hash fallback.  The embedding service owns exactly one
provider and never talks to a model library directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (rfpsearch/providers/embedding/):
#   FastEmbedEmbeddingProvider          : ONNX, no PyTorch, default
#   SentenceTransformerEmbeddingProvider: PyTorch, heavier
#   HashEmbeddingProvider               : md5-derived vectors, always available
class IEmbeddingProvider(ABC):
    """Contract for embedding backends used by the embedding service."""

    @abstractmethod
    async def load(self) -> None:
        """Load the underlying model so the first embed call is not slow.

        Called once by the embedding service during start-up.  Must be safe
        to call more than once.

        Raises
        ------
        rfpsearch.utils.errors.EmbeddingError
            If the model cannot be loaded.
        """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*.

        Raises
        ------
        rfpsearch.utils.errors.EmbeddingError
            If the model call fails for the batch as a whole.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text (e.g. a search query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the vectors this provider produces."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier persisted alongside each embedding."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the backend identifier, e.g. ``"fastembed"`` or ``"hash"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backend library is installed and usable.

        Must not download or load a model.
        """

    async def close(self) -> None:  # noqa: B027  optional hook
        """Release model resources.  Default: nothing to release."""
