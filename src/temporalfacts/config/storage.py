"""Where the knowledge store lives on disk.

``DATABASE_URI`` wins outright. Otherwise the store is a SQLite file named by
``TEMPORALFACTS_DB_FILENAME`` inside ``TEMPORALFACTS_DATA_DIR`` (or the
platform's per-user data directory).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "temporalfacts"
DEFAULT_DB_FILENAME: Final[str] = "temporalfacts.db"
DATA_DIR_ENV: Final[str] = "TEMPORALFACTS_DATA_DIR"
DB_FILENAME_ENV: Final[str] = "TEMPORALFACTS_DB_FILENAME"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"
SQLITE_MEMORY_URI: Final[str] = "sqlite+pysqlite:///:memory:"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def database_path(self, *, ensure: bool = True) -> Path:
        """Path of the SQLite file; ``ensure`` creates the data directory first."""
        directory = self.resolve_data_dir()
        if ensure:
            directory.mkdir(parents=True, exist_ok=True)
        return directory / self.database_filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and ":memory:" in self.uri


def _platform_data_home() -> Path:
    if os.name == "nt":
        local = os.getenv("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = os.getenv("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    configured = os.getenv(DATA_DIR_ENV)
    data_dir = Path(configured) if configured else _platform_data_home() / APP_DIR_NAME
    filename = (os.getenv(DB_FILENAME_ENV) or "").strip() or DEFAULT_DB_FILENAME
    return StorageConfig(data_dir=data_dir, database_filename=filename)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    override = (os.getenv(DATABASE_URI_ENV) or "").strip()
    if override:
        return DatabaseConfig(uri=override)
    return DatabaseConfig(uri=(storage or get_storage_config()).database_uri())


def get_database_uri() -> str:
    return get_database_config().uri
