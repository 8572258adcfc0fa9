"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers, later layers winning:

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file          -- local developer overrides
  3. environment variables  -- set at deploy time

``load_config()`` reads the YAML file first, then deep-merges the values
resolved by :class:`Settings` on top, so a section such as ``search`` can
keep YAML-only keys while ``SEARCH_ALPHA`` still overrides ``alpha``.
"""

from pathlib import Path

import yaml

from rfpsearch.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    s = settings or Settings()
    env_overrides = {
        "app": {
            "host": s.app_host,
            "port": s.app_port,
            "env": s.app_env,
        },
        "storage": {
            "database_path": s.database_path,
            "upload_dir": s.upload_dir,
        },
        "embedding": {
            "backend": s.embedding_backend,
            "model_name": s.embedding_model_name,
            "model_version": s.embedding_model_version,
            "dimension": s.embedding_dimension,
            "batch_size": s.embed_batch_size,
            "worker_concurrency": s.embed_worker_concurrency,
        },
        "chunking": {
            "max_tokens": s.chunk_max_tokens,
            "overlap": s.chunk_overlap,
        },
        "search": {
            "alpha": s.search_alpha,
            "default_top_k": s.search_default_top_k,
            "max_top_k": s.search_max_top_k,
        },
        "queue": {
            "attempts": s.queue_attempts,
            "backoff_base_seconds": s.queue_backoff_base_seconds,
            "remove_on_complete": s.queue_remove_on_complete,
            "remove_on_fail": s.queue_remove_on_fail,
        },
        "logging": {
            "level": s.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
