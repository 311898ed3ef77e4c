from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from temporalfacts.app import FactEngine
from temporalfacts.config import EngineConfig
from temporalfacts.domain.errors import ConflictError, NotFoundError, ValidationError
from temporalfacts.domain.fact_store import MentionInput, SourceInput
from temporalfacts.domain.model import (
    EntityType,
    ExtractionMethod,
    FactStatus,
    MentionRole,
    SourceKind,
)
from tests.helpers.knowledge import utc

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from temporalfacts.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from temporalfacts.domain.model import Entity, Fact


def _employment(engine: FactEngine, paula: Entity, employer: str, valid_at: datetime) -> Fact:
    return engine.create_fact(
        f"Paula works at {employer}",
        valid_at,
        mentions=[
            MentionInput("Paula", entity_id=paula.id, role=MentionRole.SUBJECT),
            MentionInput(employer, EntityType.ORGANIZATION, MentionRole.OBJECT),
        ],
        sources=[SourceInput(f"profile-{employer.lower()}")],
    )


@pytest.fixture
def paula(fact_engine: FactEngine) -> Entity:
    return fact_engine.create_entity("Paula", EntityType.PERSON)


def test_supersede_links_old_and_new_facts(fact_engine: FactEngine, paula: Entity) -> None:
    old = _employment(fact_engine, paula, "Google", utc(2020, 1, 15))

    new = fact_engine.supersede(old.id, "Paula works at Microsoft", utc(2024, 3, 15))

    stored_old = fact_engine.facts.get(old.id)
    assert new.status is FactStatus.CANONICAL
    assert new.valid_at == utc(2024, 3, 15)
    assert new.invalid_at is None
    assert stored_old.status is FactStatus.SUPERSEDED
    assert stored_old.superseded_by_id == new.id
    assert stored_old.invalid_at == new.valid_at


def test_supersede_copies_mentions_and_sources(fact_engine: FactEngine, paula: Entity) -> None:
    old = _employment(fact_engine, paula, "Google", utc(2020, 1, 15))

    new = fact_engine.supersede(old.id, "Paula works at Microsoft", utc(2024, 3, 15))

    stored = fact_engine.facts.get(new.id)
    assert stored.entity_ids == fact_engine.facts.get(old.id).entity_ids
    assert [source.source_id for source in stored.sources] == ["profile-google"]


def test_supersede_with_explicit_mentions(fact_engine: FactEngine, paula: Entity) -> None:
    old = _employment(fact_engine, paula, "Google", utc(2020, 1, 15))

    new = fact_engine.supersede(
        old.id,
        "Paula works at Microsoft",
        utc(2024, 3, 15),
        mentions=[
            MentionInput("Paula", entity_id=paula.id, role=MentionRole.SUBJECT),
            MentionInput("Microsoft", EntityType.ORGANIZATION, MentionRole.OBJECT),
        ],
    )

    microsoft = fact_engine.resolve_entity("Microsoft")
    assert microsoft is not None
    assert fact_engine.facts.get(new.id).entity_ids == frozenset({paula.id, microsoft.entity.id})


def test_supersede_rejects_earlier_or_equal_valid_at(
    fact_engine: FactEngine, paula: Entity
) -> None:
    old = _employment(fact_engine, paula, "Google", utc(2020, 1, 15))

    with pytest.raises(ValidationError):
        fact_engine.supersede(old.id, "Paula works at Microsoft", utc(2019))
    with pytest.raises(ValidationError):
        fact_engine.supersede(old.id, "Paula works at Microsoft", utc(2020, 1, 15))

    assert fact_engine.facts.get(old.id).status is FactStatus.CANONICAL
    assert fact_engine.facts.stats().total == 1


def test_supersede_twice_is_a_conflict(fact_engine: FactEngine, paula: Entity) -> None:
    old = _employment(fact_engine, paula, "Google", utc(2020, 1, 15))
    fact_engine.supersede(old.id, "Paula works at Microsoft", utc(2024, 3, 15))

    with pytest.raises(ConflictError):
        fact_engine.supersede(old.id, "Paula works at Apple", utc(2025))

    assert fact_engine.facts.find("Paula works at Apple", utc(2025)) is None


def test_supersede_unknown_fact_raises(fact_engine: FactEngine) -> None:
    with pytest.raises(NotFoundError):
        fact_engine.supersede(uuid4(), "Paula works at Microsoft", utc(2024))


def test_corroborate_is_idempotent_and_promotes_at_threshold(fact_engine: FactEngine) -> None:
    fact = fact_engine.create_fact("Paula works at Google", utc(2020))
    first = fact_engine.create_fact("Paula is a Google engineer", utc(2020))
    second = fact_engine.create_fact("Paula badge issued by Google", utc(2020))

    once = fact_engine.corroborate(fact.id, first.id)
    twice = fact_engine.corroborate(fact.id, first.id)
    assert once.status is FactStatus.CANONICAL
    assert twice.corroborated_by_ids == (first.id,)

    promoted = fact_engine.corroborate(fact.id, second.id)
    assert promoted.status is FactStatus.CORROBORATED
    assert fact_engine.facts.get(fact.id).corroborated_by_ids == (first.id, second.id)


def test_corroborate_threshold_is_configurable(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    engine = FactEngine(sqlite_unit_of_work, EngineConfig(corroboration_threshold=1))
    fact = engine.create_fact("Paula works at Google", utc(2020))
    other = engine.create_fact("Paula is a Google engineer", utc(2020))

    assert engine.corroborate(fact.id, other.id).status is FactStatus.CORROBORATED


def test_corroborate_rejects_self_and_unknown(fact_engine: FactEngine) -> None:
    fact = fact_engine.create_fact("Paula works at Google", utc(2020))

    with pytest.raises(ValidationError):
        fact_engine.corroborate(fact.id, fact.id)
    with pytest.raises(NotFoundError):
        fact_engine.corroborate(fact.id, uuid4())


def test_corroborated_fact_can_be_superseded(fact_engine: FactEngine, paula: Entity) -> None:
    fact = _employment(fact_engine, paula, "Google", utc(2020))
    fact_engine.corroborate(fact.id, fact_engine.create_fact("Badge issued", utc(2020)).id)
    fact_engine.corroborate(fact.id, fact_engine.create_fact("Payroll entry", utc(2020)).id)

    fact_engine.supersede(fact.id, "Paula works at Microsoft", utc(2024))

    stored = fact_engine.facts.get(fact.id)
    assert stored.status is FactStatus.SUPERSEDED
    assert len(stored.corroborated_by_ids) == 2


def test_synthesize_leaves_sources_untouched(fact_engine: FactEngine, paula: Entity) -> None:
    joined = _employment(fact_engine, paula, "Google", utc(2020))
    promoted = fact_engine.create_fact("Paula became staff engineer", utc(2022), confidence=0.5)

    summary = fact_engine.synthesize(
        [joined.id, promoted.id, joined.id], "Paula grew at Google", utc(2020), utc(2024)
    )

    assert summary.status is FactStatus.SYNTHESIZED
    assert summary.extraction_method is ExtractionMethod.SYNTHESIZED
    assert summary.derived_from_ids == (joined.id, promoted.id)
    assert summary.confidence == pytest.approx(0.75)
    assert summary.invalid_at == utc(2024)
    assert paula.id in summary.entity_ids
    assert all(source.kind is SourceKind.SUPPORTING for source in summary.sources)
    assert fact_engine.facts.get(joined.id).status is FactStatus.CANONICAL
    assert fact_engine.facts.get(promoted.id).status is FactStatus.CANONICAL


def test_synthesize_requires_existing_sources(fact_engine: FactEngine) -> None:
    fact = fact_engine.create_fact("Paula works at Google", utc(2020))

    with pytest.raises(ValidationError):
        fact_engine.synthesize([], "Nothing", utc(2020))
    with pytest.raises(NotFoundError):
        fact_engine.synthesize([fact.id, uuid4()], "Partial", utc(2020))


def test_synthesized_fact_is_excluded_from_default_view(fact_engine: FactEngine) -> None:
    fact = fact_engine.create_fact("Paula works at Google", utc(2020))
    summary = fact_engine.synthesize([fact.id], "Paula career summary", utc(2020))

    ids = [item.id for item in fact_engine.query(at=utc(2021))]
    synthesized = fact_engine.query(at=utc(2021), status=FactStatus.SYNTHESIZED)

    assert ids == [fact.id]
    assert [item.id for item in synthesized] == [summary.id]


def test_invalidate_sets_end_without_changing_status(fact_engine: FactEngine) -> None:
    fact = fact_engine.create_fact("Paula works at Google", utc(2020))

    ended = fact_engine.invalidate(fact.id, utc(2023))

    assert ended.invalid_at == utc(2023)
    assert ended.status is FactStatus.CANONICAL
    with pytest.raises(ValidationError):
        fact_engine.invalidate(fact.id, utc(2019))
    assert fact_engine.facts.get(fact.id).invalid_at == utc(2023)


def test_invalidate_refuses_superseded_fact(fact_engine: FactEngine, paula: Entity) -> None:
    old = _employment(fact_engine, paula, "Google", utc(2020))
    new = fact_engine.supersede(old.id, "Paula works at Microsoft", utc(2024))

    with pytest.raises(ConflictError):
        fact_engine.invalidate(old.id, utc(2022))

    stored_old = fact_engine.facts.get(old.id)
    assert stored_old.status is FactStatus.SUPERSEDED
    assert stored_old.invalid_at == new.valid_at


def test_find_conflicts_flags_overlapping_similar_facts(
    fact_engine: FactEngine, paula: Entity
) -> None:
    google = _employment(fact_engine, paula, "Google", utc(2020))
    microsoft = _employment(fact_engine, paula, "Microsoft", utc(2021))
    fact_engine.create_fact(
        "Paula adopted a rescue cat named Biscuit",
        utc(2021),
        mentions=[MentionInput("Paula", entity_id=paula.id, role=MentionRole.SUBJECT)],
    )

    conflicts = fact_engine.find_conflicts(paula.id)

    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert {conflict.first.id, conflict.second.id} == {google.id, microsoft.id}
    assert 0.5 <= conflict.similarity < 0.95
    assert conflict.shared_entity_ids == frozenset({paula.id})


def test_find_conflicts_includes_corroborated_facts(
    fact_engine: FactEngine, paula: Entity
) -> None:
    google = _employment(fact_engine, paula, "Google", utc(2020))
    microsoft = _employment(fact_engine, paula, "Microsoft", utc(2021))
    for note in ("Badge issued", "Payroll entry"):
        fact_engine.corroborate(google.id, fact_engine.create_fact(note, utc(2020)).id)

    conflicts = fact_engine.find_conflicts(paula.id)

    assert fact_engine.facts.get(google.id).status is FactStatus.CORROBORATED
    assert [{conflict.first.id, conflict.second.id} for conflict in conflicts] == [
        {google.id, microsoft.id}
    ]


def test_find_conflicts_ignores_disjoint_intervals(fact_engine: FactEngine, paula: Entity) -> None:
    google = _employment(fact_engine, paula, "Google", utc(2020))
    fact_engine.supersede(google.id, "Paula works at Microsoft", utc(2024))

    assert fact_engine.find_conflicts(paula.id) == []


def test_find_conflicts_requires_same_role(fact_engine: FactEngine, paula: Entity) -> None:
    fact_engine.create_fact(
        "Paula met the Google team",
        utc(2020),
        mentions=[MentionInput("Paula", entity_id=paula.id, role=MentionRole.SUBJECT)],
    )
    fact_engine.create_fact(
        "Google team met Paula",
        utc(2020),
        mentions=[MentionInput("Paula", entity_id=paula.id, role=MentionRole.OBJECT)],
    )

    assert fact_engine.find_conflicts(paula.id) == []


def test_resolve_conflict_supersedes_without_new_fact(
    fact_engine: FactEngine, paula: Entity
) -> None:
    google = _employment(fact_engine, paula, "Google", utc(2020))
    microsoft = _employment(fact_engine, paula, "Microsoft", utc(2021))

    kept = fact_engine.resolve_conflict(microsoft.id, [google.id], reason="newer HR record")

    loser = fact_engine.facts.get(google.id)
    assert kept.id == microsoft.id
    assert loser.status is FactStatus.SUPERSEDED
    assert loser.superseded_by_id == microsoft.id
    assert loser.invalid_at == microsoft.valid_at
    assert loser.metadata["supersede_reason"] == "newer HR record"
    assert fact_engine.facts.stats().total == 2
    assert fact_engine.find_conflicts(paula.id) == []


def test_resolve_conflict_rejects_keep_in_supersede_ids(
    fact_engine: FactEngine, paula: Entity
) -> None:
    google = _employment(fact_engine, paula, "Google", utc(2020))

    with pytest.raises(ValidationError):
        fact_engine.resolve_conflict(google.id, [google.id])


def test_resolve_conflict_needs_interval_room(fact_engine: FactEngine, paula: Entity) -> None:
    early = _employment(fact_engine, paula, "Google", utc(2021))
    later = _employment(fact_engine, paula, "Microsoft", utc(2022))

    # the kept fact starts before the loser, so the loser cannot end there
    with pytest.raises(ValidationError):
        fact_engine.resolve_conflict(early.id, [later.id])

    assert fact_engine.facts.get(later.id).status is FactStatus.CANONICAL


def test_build_timeline_fact_spans_history(fact_engine: FactEngine, paula: Entity) -> None:
    google = _employment(fact_engine, paula, "Google", utc(2020, 1, 15))
    fact_engine.supersede(google.id, "Paula works at Microsoft", utc(2024, 3, 15))

    summary = fact_engine.resolver.build_timeline_fact(paula.id)

    assert summary is not None
    assert summary.status is FactStatus.SYNTHESIZED
    assert summary.valid_at == utc(2020, 1, 15)
    assert summary.invalid_at is None
    assert len(summary.derived_from_ids) == 2
    assert summary.text == "Paula: timeline from 2020-01-15"


def test_build_timeline_fact_closed_history(fact_engine: FactEngine, paula: Entity) -> None:
    google = _employment(fact_engine, paula, "Google", utc(2020, 1, 15))
    fact_engine.invalidate(google.id, utc(2022, 6, 30))

    summary = fact_engine.resolver.build_timeline_fact(paula.id, topic="google")

    assert summary is not None
    assert summary.invalid_at == utc(2022, 6, 30)
    assert summary.text == "Paula: google from 2020-01-15 to 2022-06-30"
    assert fact_engine.resolver.build_timeline_fact(paula.id, topic="apple") is None


def test_parallel_supersedes_of_one_fact_let_exactly_one_win(
    threaded_fact_engine: FactEngine,
) -> None:
    paula = threaded_fact_engine.create_entity("Paula", EntityType.PERSON)
    old = _employment(threaded_fact_engine, paula, "Google", utc(2020))
    employers = ["Microsoft", "Apple", "Amazon", "Netflix", "Meta", "Intel"]

    results = threaded_fact_engine.process_parallel(
        employers,
        lambda employer: threaded_fact_engine.supersede(
            old.id, f"Paula works at {employer}", utc(2024)
        ),
        item_id=lambda employer, _: employer,
    )

    winners = [result for result in results if result.ok]
    assert len(winners) == 1
    losers = [result.error for result in results if not result.ok]
    assert [error.type for error in losers if error is not None] == ["ConflictError"] * 5
    stored_old = threaded_fact_engine.facts.get(old.id)
    assert winners[0].value is not None
    assert stored_old.superseded_by_id == winners[0].value.id
    assert threaded_fact_engine.facts.stats().total == 2


def test_parallel_resolve_conflict_keeps_one_loser_link(
    threaded_fact_engine: FactEngine,
) -> None:
    paula = threaded_fact_engine.create_entity("Paula", EntityType.PERSON)
    google = _employment(threaded_fact_engine, paula, "Google", utc(2020))
    microsoft = _employment(threaded_fact_engine, paula, "Microsoft", utc(2021))
    apple = _employment(threaded_fact_engine, paula, "Apple", utc(2021, 6, 1))

    results = threaded_fact_engine.process_parallel(
        [microsoft.id, apple.id],
        lambda keep_id: threaded_fact_engine.resolve_conflict(keep_id, [google.id]),
        item_id=lambda keep_id, _: keep_id,
    )

    assert [result.ok for result in results].count(True) == 1
    failed = next(result for result in results if not result.ok)
    assert failed.error is not None
    assert failed.error.type == "ConflictError"
    winner = next(result for result in results if result.ok)
    assert threaded_fact_engine.facts.get(google.id).superseded_by_id == winner.item_id
