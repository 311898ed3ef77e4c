from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest  # noqa: TC002

from temporalfacts.config import storage


def test_get_storage_config_prefers_explicit_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    custom = tmp_path / "custom-data"
    monkeypatch.setenv(storage.DATA_DIR_ENV, str(custom))

    result = storage.get_storage_config().resolve_data_dir()

    assert result == custom.resolve()


def test_default_data_dir_follows_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv(storage.DATA_DIR_ENV, raising=False)
    monkeypatch.delenv(storage.DB_FILENAME_ENV, raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))

    config = storage.get_storage_config()

    assert config.resolve_data_dir() == (tmp_path / "xdg" / storage.APP_DIR_NAME).resolve()
    assert config.database_filename == storage.DEFAULT_DB_FILENAME


def test_get_database_uri_uses_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite:///override.db")

    uri = storage.get_database_uri()

    assert uri == "sqlite:///override.db"


def test_get_database_uri_creates_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.delenv(storage.DB_FILENAME_ENV, raising=False)
    monkeypatch.setenv(storage.DATA_DIR_ENV, str(tmp_path / "data-dir"))

    uri = storage.get_database_uri()

    expected_path = (tmp_path / "data-dir" / storage.DEFAULT_DB_FILENAME).resolve()
    assert uri == f"sqlite+pysqlite:///{expected_path}"
    assert expected_path.parent.exists()


def test_database_path_without_ensure_leaves_disk_alone(tmp_path: Path) -> None:
    config = storage.StorageConfig(data_dir=tmp_path / "missing", database_filename="facts.db")

    path = config.database_path(ensure=False)

    assert path == (tmp_path / "missing" / "facts.db").resolve()
    assert not path.parent.exists()


def test_database_filename_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv(storage.DATA_DIR_ENV, str(tmp_path))
    monkeypatch.setenv(storage.DB_FILENAME_ENV, "hr-facts.db")

    config = storage.get_database_config()

    assert config.uri.endswith("/hr-facts.db")
    assert config.is_sqlite
    assert not config.is_memory


def test_memory_database_is_detected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", storage.SQLITE_MEMORY_URI)

    config = storage.get_database_config()

    assert config.is_memory
    assert not storage.DatabaseConfig(uri="postgresql+psycopg://localhost/facts").is_sqlite
