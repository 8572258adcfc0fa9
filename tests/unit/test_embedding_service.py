"""Unit tests for EmbeddingService lifecycle, batching and failure isolation."""

from __future__ import annotations

import pytest

from rfpsearch.interfaces.embedding_provider import IEmbeddingProvider
from rfpsearch.providers.embedding import HashEmbeddingProvider
from rfpsearch.providers.embedding.hash_embedding_provider import hash_embedding
from rfpsearch.services.embedding_service import EmbeddingService
from rfpsearch.utils.errors import DimensionMismatchError, EmbeddingError, InvalidInputError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _FakeProvider(IEmbeddingProvider):
    """Records calls; fails any batch containing a text listed in ``poison``."""

    def __init__(
        self,
        dimension: int = 4,
        poison: set[str] | None = None,
        available: bool = True,
        load_error: bool = False,
        wrong_dimension_for: set[str] | None = None,
    ) -> None:
        self.dimension = dimension
        self.poison = poison or set()
        self.available = available
        self.load_error = load_error
        self.wrong_dimension_for = wrong_dimension_for or set()
        self.batch_calls: list[list[str]] = []
        self.closed = False

    async def load(self) -> None:
        if self.load_error:
            raise EmbeddingError(message="model download failed", provider_name="fake")

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        if self.poison.intersection(texts):
            raise RuntimeError("batch rejected")
        return [self._vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        if text in self.poison:
            raise RuntimeError(f"cannot embed {text!r}")
        return self._vector(text)

    def _vector(self, text: str) -> list[float]:
        size = self.dimension + 1 if text in self.wrong_dimension_for else self.dimension
        return [float(len(text))] * size

    def get_dimension(self) -> int:
        return self.dimension

    def get_model_name(self) -> str:
        return "fake-model"

    def get_provider_name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return self.available

    async def close(self) -> None:
        self.closed = True


async def _make_service(provider: IEmbeddingProvider, **kwargs) -> EmbeddingService:
    service = EmbeddingService(provider=provider, dimension=4, **kwargs)
    await service.initialize()
    return service


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_not_ready_before_initialize(self) -> None:
        service = EmbeddingService(provider=_FakeProvider(), dimension=4)
        assert not service.ready
        with pytest.raises(EmbeddingError):
            await service.embed("hello")
        with pytest.raises(EmbeddingError):
            await service.embed_batch(["hello"])

    async def test_initialize_is_idempotent(self) -> None:
        service = await _make_service(_FakeProvider())
        await service.initialize()
        assert service.ready

    async def test_falls_back_when_primary_fails_to_load(self) -> None:
        service = await _make_service(
            _FakeProvider(load_error=True),
            fallback=HashEmbeddingProvider(dimension=4),
        )
        meta = service.get_model_metadata()
        assert meta.backend == "hash"
        assert meta.name == "md5-pseudo-embedding"

    async def test_falls_back_when_backend_not_installed(self) -> None:
        service = await _make_service(
            _FakeProvider(available=False),
            fallback=HashEmbeddingProvider(dimension=4),
        )
        assert service.get_model_metadata().backend == "hash"

    async def test_load_failure_without_fallback_raises(self) -> None:
        service = EmbeddingService(provider=_FakeProvider(load_error=True), dimension=4)
        with pytest.raises(EmbeddingError):
            await service.initialize()
        assert not service.ready

    async def test_shutdown_closes_provider(self) -> None:
        provider = _FakeProvider()
        service = await _make_service(provider)
        await service.shutdown()

        assert provider.closed
        assert not service.ready
        with pytest.raises(EmbeddingError):
            await service.embed("after shutdown")

    async def test_model_metadata(self) -> None:
        service = await _make_service(_FakeProvider(), model_version="2.1.0")
        meta = service.get_model_metadata()
        assert (meta.name, meta.version, meta.dimension, meta.backend) == (
            "fake-model",
            "2.1.0",
            4,
            "fake",
        )


# ---------------------------------------------------------------------------
# Single embedding
# ---------------------------------------------------------------------------


class TestEmbed:
    async def test_embed_returns_vector_of_configured_dimension(self) -> None:
        service = await _make_service(_FakeProvider())
        assert await service.embed("abc") == [3.0, 3.0, 3.0, 3.0]

    @pytest.mark.parametrize("bad", ["", "   ", None, 42])
    async def test_embed_rejects_blank_or_non_string(self, bad) -> None:
        service = await _make_service(_FakeProvider())
        with pytest.raises(InvalidInputError):
            await service.embed(bad)

    async def test_embed_dimension_mismatch(self) -> None:
        service = await _make_service(_FakeProvider(wrong_dimension_for={"odd"}))
        with pytest.raises(DimensionMismatchError):
            await service.embed("odd")


# ---------------------------------------------------------------------------
# Batch embedding
# ---------------------------------------------------------------------------


class TestEmbedBatch:
    async def test_empty_list_returns_empty(self) -> None:
        service = await _make_service(_FakeProvider())
        assert await service.embed_batch([]) == []

    async def test_non_list_rejected(self) -> None:
        service = await _make_service(_FakeProvider())
        with pytest.raises(InvalidInputError):
            await service.embed_batch("not a list")  # type: ignore[arg-type]

    async def test_results_keep_input_order_across_sub_batches(self) -> None:
        provider = _FakeProvider()
        service = await _make_service(provider, batch_size=2)
        texts = ["a", "bb", "ccc", "dddd", "eeeee"]

        results = await service.embed_batch(texts)

        assert [r.index for r in results] == [0, 1, 2, 3, 4]
        assert [r.text for r in results] == texts
        assert [r.embedding[0] for r in results] == [1.0, 2.0, 3.0, 4.0, 5.0]
        assert sorted(len(call) for call in provider.batch_calls) == [1, 2, 2]

    async def test_batch_size_override(self) -> None:
        provider = _FakeProvider()
        service = await _make_service(provider, batch_size=100)
        await service.embed_batch(["a", "b", "c"], batch_size=1)
        assert len(provider.batch_calls) == 3

    async def test_one_bad_item_does_not_fail_the_batch(self) -> None:
        service = await _make_service(_FakeProvider(poison={"bad"}), batch_size=10)

        results = await service.embed_batch(["good", "bad", "fine"])

        assert [r.ok for r in results] == [True, False, True]
        assert "cannot embed" in results[1].error
        assert results[1].embedding is None

    async def test_blank_items_fail_individually(self) -> None:
        provider = _FakeProvider()
        service = await _make_service(provider)

        results = await service.embed_batch(["real text", "   "])

        assert results[0].ok
        assert not results[1].ok
        assert provider.batch_calls == [["real text"]]

    async def test_dimension_mismatch_is_per_item(self) -> None:
        service = await _make_service(_FakeProvider(wrong_dimension_for={"odd"}))

        results = await service.embed_batch(["even", "odd"])

        assert results[0].ok
        assert not results[1].ok
        assert "dimension" in results[1].error.lower()


# ---------------------------------------------------------------------------
# Hash provider
# ---------------------------------------------------------------------------


class TestHashEmbedding:
    def test_deterministic(self) -> None:
        assert hash_embedding("security compliance", 384) == hash_embedding("security compliance", 384)

    def test_dimension_and_range(self) -> None:
        vector = hash_embedding("anything", 384)
        assert len(vector) == 384
        assert all(-1.0 <= v <= 1.0 for v in vector)

    def test_components_repeat_every_sixteen(self) -> None:
        vector = hash_embedding("cycle", 40)
        assert vector[:16] == vector[16:32]

    def test_different_text_different_vector(self) -> None:
        assert hash_embedding("alpha", 8) != hash_embedding("beta", 8)

    async def test_service_with_hash_backend(self, embedding_service: EmbeddingService) -> None:
        vector = await embedding_service.embed("hybrid search")
        assert vector == hash_embedding("hybrid search", 384)
