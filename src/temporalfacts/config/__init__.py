"""Application configuration helpers."""

from __future__ import annotations

from .engine import EngineConfig, get_engine_config
from .errors import ConfigurationError
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_storage_config,
)

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "EngineConfig",
    "StorageConfig",
    "get_database_config",
    "get_database_uri",
    "get_engine_config",
    "get_storage_config",
]
