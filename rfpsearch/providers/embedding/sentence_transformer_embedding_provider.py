"""sentence-transformers backend (PyTorch).

Heavier than fastembed but can use a GPU.  Vectors are L2-normalized by the
library, and the model's own reported dimension overrides the static table.
"""

from __future__ import annotations

from typing import Any

from rfpsearch.providers.embedding.local_model_provider import LocalModelEmbeddingProvider


class SentenceTransformerEmbeddingProvider(LocalModelEmbeddingProvider):
    provider_name = "sentence-transformers"
    library = "sentence_transformers"
    known_dimensions = {
        "sentence-transformers/all-MiniLM-L6-v2": 384,
        "sentence-transformers/all-mpnet-base-v2": 768,
        "BAAI/bge-base-en-v1.5": 768,
        "BAAI/bge-large-en-v1.5": 1024,
    }

    def _create_model(self) -> Any:
        from sentence_transformers import SentenceTransformer

        model = SentenceTransformer(self._model_name)
        reported = model.get_sentence_embedding_dimension()
        if reported:
            self._dimension = int(reported)
        return model

    def _encode(self, batch: list[str]) -> list[list[float]]:
        vectors = self._model.encode(batch, normalize_embeddings=True, show_progress_bar=False)
        return vectors.tolist()
