"""Read-side service: queries, timelines and diffs over the fact store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from temporalfacts.domain.model import FactStatus
from temporalfacts.domain.model.primitives import as_optional_utc, as_utc
from temporalfacts.domain.ports.unit_of_work import transaction_scope
from temporalfacts.domain.resolution.entity_resolver import follow_canonical
from temporalfacts.domain.temporal.diff import FactDiff, diff_snapshots
from temporalfacts.domain.temporal.query import FactQuery, StatusFilter, execute_query
from temporalfacts.domain.temporal.timeline import Timeline

if TYPE_CHECKING:
    from datetime import date, datetime
    from uuid import UUID

    from temporalfacts.domain.model import Fact
    from temporalfacts.domain.ports.unit_of_work import KnowledgeUnitOfWork, UnitOfWorkFactory


class TemporalQueryEngine:
    def __init__(self, unit_of_work_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = unit_of_work_factory

    def run(self, spec: FactQuery, *, uow: KnowledgeUnitOfWork | None = None) -> list[Fact]:
        with transaction_scope(self._uow_factory, uow) as scope:
            return execute_query(scope, spec)

    def query(
        self,
        topic: str | None = None,
        at: date | datetime | None = None,
        entity_id: UUID | None = None,
        status: StatusFilter = FactStatus.CANONICAL,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        limit: int | None = None,
        *,
        current_only: bool = True,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> list[Fact]:
        spec = FactQuery(
            topic=topic,
            at=as_optional_utc(at),
            entity_id=entity_id,
            status=status,
            start=as_optional_utc(start),
            end=as_optional_utc(end),
            limit=limit,
            current_only=current_only,
        )
        return self.run(spec, uow=uow)

    def current_facts(
        self,
        entity_id: UUID | None = None,
        topic: str | None = None,
        limit: int | None = None,
    ) -> list[Fact]:
        return self.query(topic=topic, entity_id=entity_id, limit=limit)

    def facts_at(
        self,
        at: date | datetime,
        entity_id: UUID | None = None,
        topic: str | None = None,
    ) -> list[Fact]:
        return self.query(topic=topic, at=at, entity_id=entity_id)

    def became_valid_between(
        self,
        start: date | datetime,
        end: date | datetime,
        entity_id: UUID | None = None,
    ) -> list[Fact]:
        facts = self.query(entity_id=entity_id, start=start, end=end)
        return [fact for fact in facts if fact.became_valid_between(start, end)]

    def became_invalid_between(
        self,
        start: date | datetime,
        end: date | datetime,
        entity_id: UUID | None = None,
    ) -> list[Fact]:
        """Facts whose validity ended inside ``[start, end]``, superseded ones included."""
        # No lower bound: a fact ending exactly at ``start`` does not overlap the window.
        facts = self.query(entity_id=entity_id, status="all", end=end)
        return [fact for fact in facts if fact.became_invalid_between(start, end)]

    def timeline(
        self,
        entity_id: UUID,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Timeline:
        """Every fact mentioning the entity whose ``valid_at`` lies in ``[start, end]``."""
        with transaction_scope(self._uow_factory, uow) as scope:
            repositories = scope.repositories
            canonical = follow_canonical(repositories.entities, entity_id)
            facts = repositories.facts.for_entity(
                canonical.id, start=as_optional_utc(start), end=as_optional_utc(end)
            )
            return Timeline.from_facts(canonical.id, facts)

    def diff(
        self,
        start: date | datetime,
        end: date | datetime,
        topic: str | None = None,
        entity_id: UUID | None = None,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> FactDiff:
        """Compare the canonical snapshots at ``start`` and ``end``."""
        with transaction_scope(self._uow_factory, uow) as scope:
            before = execute_query(
                scope, FactQuery(topic=topic, at=as_utc(start), entity_id=entity_id)
            )
            after = execute_query(
                scope, FactQuery(topic=topic, at=as_utc(end), entity_id=entity_id)
            )
            return diff_snapshots(before, after)
