from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from temporalfacts.adapters.sqlalchemy.repositories import SqlAlchemyFactRepository
from temporalfacts.domain.model import (
    Entity,
    EntityMergeRecord,
    EntityType,
    ExtractionMethod,
    Fact,
    FactStatus,
    MentionRole,
)
from temporalfacts.domain.temporal.query import FactQuery
from tests.helpers.knowledge import make_fact, utc

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from temporalfacts.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork

    UowFactory = Callable[[], SqlAlchemyUnitOfWork]


def _store(factory: UowFactory, *items: Entity | Fact) -> None:
    with factory() as uow:
        for item in items:
            if isinstance(item, Entity):
                uow.repositories.entities.add(item)
            else:
                uow.repositories.facts.add(item)
        uow.commit()


def test_find_by_name_ignores_case_and_merged_entities(sqlite_unit_of_work: UowFactory) -> None:
    paula = Entity(canonical_name="Paula Chen", entity_type=EntityType.PERSON)
    duplicate = Entity(canonical_name="paula chen", entity_type=EntityType.PERSON)
    duplicate.point_to_canonical(paula)
    _store(sqlite_unit_of_work, paula, duplicate)

    with sqlite_unit_of_work() as uow:
        entities = uow.repositories.entities
        found = entities.find_by_name("PAULA CHEN")
        assert found is not None
        assert found.id == paula.id
        assert entities.find_by_name("Paula Chen", EntityType.ORGANIZATION) is None


def test_find_by_alias(sqlite_unit_of_work: UowFactory) -> None:
    google = Entity(canonical_name="Google LLC", entity_type=EntityType.ORGANIZATION)
    google.add_alias("Google")
    _store(sqlite_unit_of_work, google)

    with sqlite_unit_of_work() as uow:
        entities = uow.repositories.entities
        found = entities.find_by_alias(" google ")
        assert found is not None
        assert found.id == google.id
        assert entities.find_by_alias("Google", EntityType.PERSON) is None
        assert [entity.id for entity in entities.candidates(EntityType.ORGANIZATION)] == [
            google.id
        ]


def test_reassign_mentions_drops_duplicates(sqlite_unit_of_work: UowFactory) -> None:
    source = Entity(canonical_name="P. Chen", entity_type=EntityType.PERSON)
    target = Entity(canonical_name="Paula Chen", entity_type=EntityType.PERSON)
    shared = Fact(text="Paula works at Google", valid_at=utc(2020))
    shared.add_mention(entity_id=source.id, mention_text="Paula", role=MentionRole.SUBJECT)
    shared.add_mention(entity_id=target.id, mention_text="Paula", role=MentionRole.SUBJECT)
    only_source = Fact(text="Paula lives in Seattle", valid_at=utc(2021))
    only_source.add_mention(entity_id=source.id, mention_text="Paula")
    _store(sqlite_unit_of_work, source, target, shared, only_source)

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.entities.reassign_mentions(source.id, target.id) == 2
        uow.commit()

    with sqlite_unit_of_work() as uow:
        entities = uow.repositories.entities
        assert entities.mention_count(source.id) == 0
        assert entities.mention_count(target.id) == 2
        stored = uow.repositories.facts.get(shared.id)
        assert stored is not None
        assert [mention.entity_id for mention in stored.mentions] == [target.id]


def test_merge_history_lists_both_sides(sqlite_unit_of_work: UowFactory) -> None:
    kept = Entity(canonical_name="Paula Chen", entity_type=EntityType.PERSON)
    merged = Entity(canonical_name="P. Chen", entity_type=EntityType.PERSON)
    _store(sqlite_unit_of_work, kept, merged)
    record = EntityMergeRecord(kept_id=kept.id, merged_id=merged.id, merged_name="P. Chen")

    with sqlite_unit_of_work() as uow:
        uow.repositories.entities.add_merge_record(record)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        entities = uow.repositories.entities
        assert [entry.id for entry in entities.merge_history(kept.id)] == [record.id]
        assert [entry.id for entry in entities.merge_history(merged.id)] == [record.id]


def test_add_unique_returns_stored_fact(sqlite_unit_of_work: UowFactory) -> None:
    original = Fact(text="Paula works at Google", valid_at=utc(2020))
    _store(sqlite_unit_of_work, original)

    with sqlite_unit_of_work() as uow:
        facts = uow.repositories.facts
        stored = facts.add_unique(Fact(text="PAULA works at google", valid_at=utc(2020)))
        fresh = Fact(text="Paula works at Google", valid_at=utc(2021))
        assert facts.add_unique(fresh) is fresh
        uow.commit()

    assert stored.id == original.id
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.facts.count_by_status() == {FactStatus.CANONICAL: 2}


def test_add_unique_falls_back_when_insert_hits_identity_constraint(
    sqlite_unit_of_work: UowFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    original = Fact(text="Paula works at Google", valid_at=utc(2020))
    _store(sqlite_unit_of_work, original)
    lookup = SqlAlchemyFactRepository.find_by_identity
    lookups: list[str] = []

    # the first lookup misses as if another writer committed in between
    def racing_lookup(
        self: SqlAlchemyFactRepository, digest: str, valid_at: datetime
    ) -> Fact | None:
        lookups.append(digest)
        if len(lookups) == 1:
            return None
        return lookup(self, digest, valid_at)

    monkeypatch.setattr(SqlAlchemyFactRepository, "find_by_identity", racing_lookup)

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.facts.add_unique(
            Fact(text="Paula works at Google", valid_at=utc(2020))
        )
        uow.commit()

    assert len(lookups) == 2
    assert stored.id == original.id
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.facts.count_by_status() == {FactStatus.CANONICAL: 1}


def test_query_filters_by_instant_status_and_entity(sqlite_unit_of_work: UowFactory) -> None:
    paula = Entity(canonical_name="Paula", entity_type=EntityType.PERSON)
    google = make_fact("Paula works at Google", utc(2020), utc(2024), entity_id=paula.id)
    microsoft = make_fact("Paula works at Microsoft", utc(2024), entity_id=paula.id)
    archived = make_fact(
        "Paula works at Yahoo", utc(2018), utc(2020), status=FactStatus.SUPERSEDED
    )
    _store(sqlite_unit_of_work, paula, google, microsoft, archived)

    with sqlite_unit_of_work() as uow:
        facts = uow.repositories.facts
        at_2022 = facts.query(FactQuery(at=utc(2022)))
        all_2019 = facts.query(FactQuery(at=utc(2019), status="all"))
        for_paula = facts.query(FactQuery(entity_id=paula.id, current_only=False))
        restricted = facts.query(FactQuery(current_only=False), fact_ids=[google.id])

    assert [fact.id for fact in at_2022] == [google.id]
    assert [fact.id for fact in all_2019] == [archived.id]
    assert [fact.id for fact in for_paula] == [microsoft.id, google.id]
    assert [fact.id for fact in restricted] == [google.id]


def test_for_entity_orders_oldest_first_within_window(sqlite_unit_of_work: UowFactory) -> None:
    paula = Entity(canonical_name="Paula", entity_type=EntityType.PERSON)
    first = make_fact("Paula works at Google", utc(2020), entity_id=paula.id)
    second = make_fact("Paula lives in Seattle", utc(2022), entity_id=paula.id)
    third = make_fact("Paula owns a bike", utc(2024), entity_id=paula.id)
    _store(sqlite_unit_of_work, paula, third, first, second)

    with sqlite_unit_of_work() as uow:
        facts = uow.repositories.facts
        everything = facts.for_entity(paula.id)
        windowed = facts.for_entity(paula.id, start=utc(2021), end=utc(2022))

    assert [fact.id for fact in everything] == [first.id, second.id, third.id]
    assert [fact.id for fact in windowed] == [second.id]


def test_counts_group_by_status_and_method(sqlite_unit_of_work: UowFactory) -> None:
    _store(
        sqlite_unit_of_work,
        Fact(text="Paula works at Google", valid_at=utc(2020)),
        Fact(
            text="Paula lives in Seattle",
            valid_at=utc(2021),
            extraction_method=ExtractionMethod.LLM,
        ),
        Fact(text="Paula owns a bike", valid_at=utc(2021), status=FactStatus.SYNTHESIZED),
    )

    with sqlite_unit_of_work() as uow:
        facts = uow.repositories.facts
        assert facts.count_by_status() == {FactStatus.CANONICAL: 2, FactStatus.SYNTHESIZED: 1}
        assert facts.count_by_method() == {ExtractionMethod.MANUAL: 2, ExtractionMethod.LLM: 1}


def test_keyword_search_requires_every_term(sqlite_unit_of_work: UowFactory) -> None:
    google = Fact(text="Paula works at Google", valid_at=utc(2020))
    microsoft = Fact(text="Paula works at Microsoft", valid_at=utc(2024))
    percent = Fact(text="Revenue grew 50% at Google", valid_at=utc(2022))
    _store(sqlite_unit_of_work, google, microsoft, percent)

    with sqlite_unit_of_work() as uow:
        search = uow.repositories.search
        assert search.search("paula WORKS") == [microsoft.id, google.id]
        assert search.search("works google") == [google.id]
        assert search.search("50%") == [percent.id]
        assert search.search("paula", limit=1) == [microsoft.id]
        assert search.search("   ") == []
