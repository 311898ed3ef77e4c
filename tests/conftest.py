from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from temporalfacts.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from temporalfacts.app import FactEngine
from temporalfacts.config import EngineConfig
from temporalfacts.config.storage import DATABASE_URI_ENV, SQLITE_MEMORY_URI

os.environ.setdefault(DATABASE_URI_ENV, SQLITE_MEMORY_URI)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine(SQLITE_MEMORY_URI, future=True)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_file_engine(tmp_path: Path) -> Iterator[Engine]:
    """File-backed engine; in-memory databases are private to one thread."""

    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'facts.db'}", future=True)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def threaded_unit_of_work(
    sqlite_file_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_file_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def fact_engine(sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork]) -> FactEngine:
    return FactEngine(sqlite_unit_of_work, EngineConfig())


@pytest.fixture
def threaded_fact_engine(
    threaded_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> FactEngine:
    return FactEngine(threaded_unit_of_work, EngineConfig(max_workers=4))
