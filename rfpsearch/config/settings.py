"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, highest priority first:

  1. **Environment variables** -- e.g. ``SEARCH_ALPHA=0.7``
  2. **.env file** -- key=value lines in the project root ``.env``

Field ``embed_batch_size`` maps to env var ``EMBED_BATCH_SIZE`` and so on;
pydantic-settings matches names case-insensitively.  Defaults apply when
neither source sets a value.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """rfpsearch application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Storage ===
    database_path: str = "data/rfpsearch.db"
    upload_dir: str = "uploads"

    # === Embeddings ===
    # "fastembed" (ONNX, light), "sentence-transformers" (PyTorch) or "hash"
    # (deterministic md5 pseudo-embeddings, no model download).
    embedding_backend: str = "fastembed"
    embedding_model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_model_version: str = "1.0.0"
    embedding_dimension: int = 384
    embed_batch_size: int = 32
    embed_worker_concurrency: int = 2

    # === Chunking ===
    chunk_max_tokens: int = 500
    chunk_overlap: int = 50

    # === Search ===
    search_alpha: float = 0.6  # weight of the vector signal in hybrid scoring
    search_default_top_k: int = 10
    search_max_top_k: int = 100

    # === Job queue ===
    queue_attempts: int = 3
    queue_backoff_base_seconds: float = 2.0
    queue_remove_on_complete: int = 10
    queue_remove_on_fail: int = 5
    ingest_worker_concurrency: int = 1

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_allowed_origins: str = ""  # comma-separated; empty = allow all

    def get_cors_origins(self) -> list[str] | None:
        """Return the configured CORS origins, or ``None`` to allow all."""
        origins = [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]
        return origins or None
