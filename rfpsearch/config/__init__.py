"""Configuration module -- exports Settings, load_config, and a module-level singleton."""

from rfpsearch.config.loader import load_config
from rfpsearch.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "load_config", "settings"]
