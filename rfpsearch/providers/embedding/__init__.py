"""Embedding provider implementations.

Three implementations of IEmbeddingProvider, in the order the application
tries them:
    1. FastEmbedEmbeddingProvider -- ONNX-based, no PyTorch needed.
       Default; all-MiniLM-L6-v2 (384 dims).
    2. SentenceTransformerEmbeddingProvider -- PyTorch-based, heavier.
    3. HashEmbeddingProvider -- deterministic MD5 pseudo-embeddings, used
       when neither library is installed and in tests.

FastEmbed and SentenceTransformer import their libraries lazily, so this
package imports cleanly without either installed.
"""

from rfpsearch.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from rfpsearch.providers.embedding.hash_embedding_provider import (
    HashEmbeddingProvider,
    hash_embedding,
)
from rfpsearch.providers.embedding.sentence_transformer_embedding_provider import (
    SentenceTransformerEmbeddingProvider,
)

__all__ = [
    "FastEmbedEmbeddingProvider",
    "HashEmbeddingProvider",
    "SentenceTransformerEmbeddingProvider",
    "hash_embedding",
]
