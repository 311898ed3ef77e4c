"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError

from temporalfacts.adapters.sqlalchemy.mappings import (
    entity_alias_table,
    entity_merge_table,
    entity_mention_table,
    entity_table,
    fact_table,
)
from temporalfacts.domain.model import (
    Entity,
    EntityMention,
    EntityMergeRecord,
    EntityType,
    ExtractionMethod,
    Fact,
    FactStatus,
    ResolutionStatus,
    lookup_key,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.orm import Session

    from temporalfacts.domain.temporal.query import FactQuery


def _not_merged() -> ColumnElement[bool]:
    return entity_table.c.resolution_status != ResolutionStatus.MERGED


class SqlAlchemyEntityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Entity) -> None:
        self.session.add(entity)

    def get(self, entity_id: UUID) -> Entity | None:
        return self.session.get(Entity, entity_id)

    def find_by_name(self, name: str, entity_type: EntityType | None = None) -> Entity | None:
        stmt = (
            select(Entity)
            .where(entity_table.c.name_key == lookup_key(name))
            .where(_not_merged())
        )
        if entity_type is not None:
            stmt = stmt.where(entity_table.c.entity_type == entity_type)
        return self.session.execute(self._oldest_first(stmt).limit(1)).scalar_one_or_none()

    def find_by_alias(self, text: str, entity_type: EntityType | None = None) -> Entity | None:
        stmt = (
            select(Entity)
            .join(entity_alias_table, entity_alias_table.c.entity_id == entity_table.c.id)
            .where(entity_alias_table.c.text_key == lookup_key(text))
            .where(_not_merged())
        )
        if entity_type is not None:
            stmt = stmt.where(entity_table.c.entity_type == entity_type)
        return self.session.execute(self._oldest_first(stmt).limit(1)).scalars().first()

    def candidates(self, entity_type: EntityType | None = None) -> Sequence[Entity]:
        stmt = select(Entity).where(_not_merged())
        if entity_type is not None:
            stmt = stmt.where(entity_table.c.entity_type == entity_type)
        return self.session.execute(self._oldest_first(stmt)).scalars().all()

    def mention_count(self, entity_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(entity_mention_table)
            .where(entity_mention_table.c.entity_id == entity_id)
        )
        return self.session.execute(stmt).scalar_one()

    def reassign_mentions(self, source_id: UUID, target_id: UUID) -> int:
        """Point every mention of ``source_id`` at ``target_id``.

        A mention that would duplicate one the target already has on the same
        fact is dropped instead.
        """
        moving = (
            self.session.execute(
                select(EntityMention).where(entity_mention_table.c.entity_id == source_id)
            )
            .scalars()
            .all()
        )
        if not moving:
            return 0
        fact_ids = {mention.fact_id for mention in moving}
        taken = {
            (row.fact_id, row.mention_text)
            for row in self.session.execute(
                select(entity_mention_table.c.fact_id, entity_mention_table.c.mention_text)
                .where(entity_mention_table.c.entity_id == target_id)
                .where(entity_mention_table.c.fact_id.in_(fact_ids))
            )
        }
        for mention in moving:
            if (mention.fact_id, mention.mention_text) in taken:
                self.session.delete(mention)
                continue
            mention.entity_id = target_id
            taken.add((mention.fact_id, mention.mention_text))
        return len(moving)

    def add_merge_record(self, record: EntityMergeRecord) -> None:
        self.session.add(record)

    def merge_history(self, entity_id: UUID) -> Sequence[EntityMergeRecord]:
        stmt = (
            select(EntityMergeRecord)
            .where(
                or_(
                    entity_merge_table.c.kept_id == entity_id,
                    entity_merge_table.c.merged_id == entity_id,
                )
            )
            .order_by(entity_merge_table.c.created_at)
        )
        return self.session.execute(stmt).scalars().all()

    @staticmethod
    def _oldest_first(stmt: Select[tuple[Entity]]) -> Select[tuple[Entity]]:
        return stmt.order_by(entity_table.c.created_at, entity_table.c.id)


class SqlAlchemyFactRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Fact) -> None:
        self.session.add(entity)

    def get(self, entity_id: UUID) -> Fact | None:
        return self.session.get(Fact, entity_id)

    def get_many(self, fact_ids: Collection[UUID]) -> list[Fact]:
        if not fact_ids:
            return []
        stmt = select(Fact).where(fact_table.c.id.in_(list(fact_ids)))
        return list(self.session.execute(stmt).scalars().all())

    def find_by_identity(self, digest: str, valid_at: datetime) -> Fact | None:
        stmt = (
            select(Fact)
            .where(fact_table.c.digest == digest)
            .where(fact_table.c.valid_at == valid_at)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def add_unique(self, fact: Fact) -> Fact:
        existing = self.find_by_identity(fact.digest, fact.valid_at)
        if existing is not None:
            return existing
        try:
            with self.session.begin_nested():
                self.session.add(fact)
        except IntegrityError:
            # a concurrent writer committed the same identity first
            existing = self.find_by_identity(fact.digest, fact.valid_at)
            if existing is None:
                raise
            return existing
        return fact

    def query(self, spec: FactQuery, *, fact_ids: Collection[UUID] | None = None) -> list[Fact]:
        stmt = select(Fact)
        statuses = spec.statuses
        if statuses is not None:
            stmt = stmt.where(fact_table.c.status.in_(sorted(statuses)))

        if spec.at is not None:
            stmt = stmt.where(_contains(spec.at))
        if spec.has_range:
            stmt = stmt.where(_overlaps(spec.start, spec.end))

        if spec.entity_id is not None:
            stmt = stmt.where(_mentions_entity(spec.entity_id))
        if fact_ids is not None:
            stmt = stmt.where(fact_table.c.id.in_(list(fact_ids)))

        stmt = stmt.order_by(fact_table.c.valid_at.desc(), fact_table.c.id.asc())
        if spec.limit is not None:
            stmt = stmt.limit(spec.limit)
        return list(self.session.execute(stmt).scalars().all())

    def for_entity(
        self,
        entity_id: UUID,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Fact]:
        stmt = select(Fact).where(_mentions_entity(entity_id))
        if start is not None:
            stmt = stmt.where(fact_table.c.valid_at >= start)
        if end is not None:
            stmt = stmt.where(fact_table.c.valid_at <= end)
        stmt = stmt.order_by(fact_table.c.valid_at.asc(), fact_table.c.id.asc())
        return list(self.session.execute(stmt).scalars().all())

    def count_by_status(self) -> dict[FactStatus, int]:
        stmt = select(fact_table.c.status, func.count()).group_by(fact_table.c.status)
        return {FactStatus(status): count for status, count in self.session.execute(stmt).all()}

    def count_by_method(self) -> dict[ExtractionMethod, int]:
        stmt = select(fact_table.c.extraction_method, func.count()).group_by(
            fact_table.c.extraction_method
        )
        return {
            ExtractionMethod(method): count for method, count in self.session.execute(stmt).all()
        }


class SqlAlchemyKeywordSearch:
    """Case-insensitive term matching on fact text.

    Every whitespace-separated term must occur in the text. Results come
    newest first; no relevance ranking is attempted.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def search(self, topic: str, limit: int | None = None) -> Sequence[UUID]:
        terms = [term for term in topic.lower().split() if term]
        if not terms:
            return []
        stmt = (
            select(fact_table.c.id)
            .where(and_(*(_text_contains(term) for term in terms)))
            .order_by(fact_table.c.valid_at.desc(), fact_table.c.id.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars().all())


def _text_contains(term: str) -> ColumnElement[bool]:
    return func.lower(fact_table.c.text).contains(term, autoescape=True)


def _contains(at: datetime) -> ColumnElement[bool]:
    return and_(
        fact_table.c.valid_at <= at,
        or_(fact_table.c.invalid_at.is_(None), fact_table.c.invalid_at > at),
    )


def _overlaps(start: datetime | None, end: datetime | None) -> ColumnElement[bool]:
    clauses: list[ColumnElement[bool]] = []
    if end is not None:
        clauses.append(fact_table.c.valid_at <= end)
    if start is not None:
        clauses.append(or_(fact_table.c.invalid_at.is_(None), fact_table.c.invalid_at > start))
    return and_(*clauses)


def _mentions_entity(entity_id: UUID) -> ColumnElement[bool]:
    return (
        select(entity_mention_table.c.id)
        .where(entity_mention_table.c.fact_id == fact_table.c.id)
        .where(entity_mention_table.c.entity_id == entity_id)
        .exists()
    )


if TYPE_CHECKING:
    from temporalfacts.domain.ports.persistence import EntityRepository, FactRepository
    from temporalfacts.domain.ports.search import FactSearch

    _session_stub = cast("Session", object())
    _entity_repo: EntityRepository = SqlAlchemyEntityRepository(_session_stub)
    _fact_repo: FactRepository = SqlAlchemyFactRepository(_session_stub)
    _search: FactSearch = SqlAlchemyKeywordSearch(_session_stub)
