"""Unit tests for settings, config loading, the error hierarchy and app assembly."""

from __future__ import annotations

from pathlib import Path

import pytest

from rfpsearch.config.loader import load_config
from rfpsearch.config.settings import Settings
from rfpsearch.main import _build_embedding_service, build_components
from rfpsearch.utils.errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingError,
    RFPSearchError,
    StorageError,
    UnsupportedFileTypeError,
    ValidationError,
)


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings(_env_file=None)
        assert s.search_alpha == 0.6
        assert s.search_default_top_k == 10
        assert s.search_max_top_k == 100
        assert s.chunk_max_tokens == 500
        assert s.chunk_overlap == 50
        assert s.embedding_dimension == 384

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SEARCH_ALPHA", "0.25")
        monkeypatch.setenv("EMBEDDING_BACKEND", "hash")
        s = Settings(_env_file=None)
        assert s.search_alpha == 0.25
        assert s.embedding_backend == "hash"

    def test_cors_origins(self) -> None:
        assert Settings(_env_file=None).get_cors_origins() is None
        s = Settings(cors_allowed_origins="https://a.example, https://b.example", _env_file=None)
        assert s.get_cors_origins() == ["https://a.example", "https://b.example"]


class TestLoadConfig:
    def test_yaml_keys_survive_and_env_wins(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("search:\n  alpha: 0.9\n  min_query_length: 3\nupload:\n  max_files: 2\n")

        config = load_config(str(path), settings=Settings(search_alpha=0.4, _env_file=None))

        assert config["search"]["alpha"] == 0.4
        assert config["search"]["min_query_length"] == 3
        assert config["upload"]["max_files"] == 2

    def test_missing_file_uses_settings_only(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=Settings(_env_file=None))
        assert config["chunking"] == {"max_tokens": 500, "overlap": 50}


class TestErrors:
    def test_str_includes_provider(self) -> None:
        assert str(StorageError(message="database is locked", provider_name="sqlite")) == (
            "[sqlite] database is locked"
        )
        assert str(StorageError(message="boom")) == "boom"

    def test_hierarchy(self) -> None:
        assert issubclass(UnsupportedFileTypeError, ValidationError)
        assert issubclass(DimensionMismatchError, EmbeddingError)
        assert issubclass(ConfigurationError, RFPSearchError)

    def test_message_property(self) -> None:
        err = ValidationError(message="topK must not exceed 100")
        assert err.message == "topK must not exceed 100"
        assert err.provider_name is None


class TestAssembly:
    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            _build_embedding_service(Settings(embedding_backend="word2vec", _env_file=None))

    async def test_hash_backend_has_no_fallback(self) -> None:
        service = _build_embedding_service(
            Settings(embedding_backend="hash", embedding_dimension=16, _env_file=None)
        )
        await service.initialize()
        assert service.get_model_metadata().backend == "hash"
        assert len(await service.embed("query")) == 16
        await service.shutdown()

    def test_build_components_wires_config(self, test_settings: Settings) -> None:
        config = {"upload": {"max_files": 3, "max_file_size_mb": 1}, "queue": {}, "search": {}}
        components = build_components(test_settings, config)

        assert components["document_service"].max_file_size_bytes == 1024 * 1024
        assert components["chunker"].max_tokens == 500
        assert components["job_options"].backoff_base_seconds == 0.0
        assert set(components) >= {
            "store",
            "queue",
            "embedding_service",
            "ingestion",
            "embedding_worker",
            "search_service",
            "document_service",
        }
