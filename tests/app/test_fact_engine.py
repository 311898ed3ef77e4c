from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from temporalfacts.adapters.sqlalchemy.unit_of_work import configured_engine, shutdown
from temporalfacts.app import FactEngine
from temporalfacts.config import EngineConfig
from temporalfacts.domain.model import EntityType, FactStatus
from tests.helpers.knowledge import Document, StaticExtractor, utc

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture
def opened_engine(sqlite_engine: Engine) -> Iterator[FactEngine]:
    engine = FactEngine.open(engine=sqlite_engine, force=True, config=EngineConfig(max_workers=2))
    try:
        yield engine
    finally:
        shutdown()


def test_open_starts_the_store(opened_engine: FactEngine, sqlite_engine: Engine) -> None:
    assert configured_engine() is sqlite_engine
    assert opened_engine.coordinator.max_workers == 2

    paula = opened_engine.create_entity("Paula", EntityType.PERSON)

    assert opened_engine.canonical_entity(paula.id).id == paula.id


def test_open_reads_config_from_environment(
    sqlite_engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("TEMPORALFACTS_CORROBORATION_THRESHOLD", "5")
    try:
        engine = FactEngine.open(engine=sqlite_engine, force=True)
    finally:
        shutdown()

    assert engine.config.corroboration_threshold == 5
    assert engine.resolver.config.corroboration_threshold == 5


def test_end_to_end_fact_lifecycle(opened_engine: FactEngine) -> None:
    paula = opened_engine.create_entity("Paula", EntityType.PERSON)
    google = opened_engine.create_fact("Paula works at Google", utc(2020))
    echo = opened_engine.create_fact("Paula is employed by Google", utc(2020))
    opened_engine.corroborate(google.id, echo.id)
    opened_engine.add_alias(paula.id, "Paula Chen")

    replacement = opened_engine.supersede(google.id, "Paula works at Microsoft", utc(2024))
    summary = opened_engine.synthesize(
        [google.id, replacement.id], "Paula has worked in big tech", utc(2020)
    )
    ended = opened_engine.invalidate(echo.id, utc(2023))

    assert replacement.status is FactStatus.CANONICAL
    assert summary.status is FactStatus.SYNTHESIZED
    assert ended.invalid_at == utc(2023)
    assert opened_engine.resolve_entity("Paula Chen") is not None
    assert [fact.id for fact in opened_engine.query(topic="microsoft")] == [replacement.id]


def test_process_helpers_delegate_to_coordinator(opened_engine: FactEngine) -> None:
    sequential = opened_engine.process([1, 2], lambda value: value + 1)

    assert [result.value for result in sequential] == [2, 3]


def test_extract_sequentially_through_facade(opened_engine: FactEngine) -> None:
    extractor = StaticExtractor({"doc-1": [{"text": "Paula works at Google"}]})

    (result,) = opened_engine.extract([Document("doc-1", "Paula works at Google")], extractor)

    assert result.ok
    assert opened_engine.facts.stats().total == 1
