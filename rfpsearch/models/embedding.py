"""Embedding result and provenance models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class EmbeddingResult(BaseModel):
    """Per-input outcome of a batch embedding call.

    Exactly one of ``embedding`` / ``error`` is set.  ``index`` is the
    position of ``text`` in the original input list.
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    text: str
    embedding: list[float] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.embedding is not None


class ModelMetadata(BaseModel):
    """Identifies the model that produced a vector; persisted with every write."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    dimension: int = Field(gt=0)
    backend: str = Field(description='Active backend, e.g. "fastembed" or "hash".')
