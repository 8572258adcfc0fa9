"""fastembed backend: ONNX Runtime on CPU, no PyTorch.

This is the default backend.  ``all-MiniLM-L6-v2`` produces the 384-dim
vectors the chunk store expects; weights download on first load and are
cached by fastembed.
"""

from __future__ import annotations

from typing import Any

from rfpsearch.providers.embedding.local_model_provider import LocalModelEmbeddingProvider


class FastEmbedEmbeddingProvider(LocalModelEmbeddingProvider):
    provider_name = "fastembed"
    library = "fastembed"
    known_dimensions = {
        "sentence-transformers/all-MiniLM-L6-v2": 384,
        "BAAI/bge-small-en-v1.5": 384,
        "BAAI/bge-base-en-v1.5": 768,
        "intfloat/multilingual-e5-large": 1024,
    }

    def _create_model(self) -> Any:
        from fastembed import TextEmbedding

        return TextEmbedding(model_name=self._model_name)

    def _encode(self, batch: list[str]) -> list[list[float]]:
        # embed() is a generator of numpy arrays, one per input
        return [vector.tolist() for vector in self._model.embed(batch)]
