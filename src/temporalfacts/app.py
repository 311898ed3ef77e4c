"""Application facade wiring the domain services to the SQLAlchemy adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from temporalfacts.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, startup
from temporalfacts.config import get_engine_config
from temporalfacts.domain.fact_store import FactStore
from temporalfacts.domain.model import ExtractionMethod, FactStatus
from temporalfacts.domain.pipeline.coordinator import BatchCoordinator, default_item_id
from temporalfacts.domain.pipeline.extraction import ExtractionPipeline
from temporalfacts.domain.pipeline.resolution import ResolutionPipeline
from temporalfacts.domain.resolution.entity_resolver import EntityResolver
from temporalfacts.domain.resolution.fact_resolver import FactResolver
from temporalfacts.domain.temporal.engine import TemporalQueryEngine

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from datetime import date, datetime
    from uuid import UUID

    from sqlalchemy.engine import Engine

    from temporalfacts.config import EngineConfig
    from temporalfacts.domain.fact_store import MentionInput, SourceInput
    from temporalfacts.domain.model import AliasKind, Entity, EntityAlias, EntityType, Fact
    from temporalfacts.domain.pipeline.coordinator import BatchResult, ItemId, Operation
    from temporalfacts.domain.pipeline.extraction import ExtractionOutcome
    from temporalfacts.domain.ports.extraction import FactExtractor, SourceDocument
    from temporalfacts.domain.ports.unit_of_work import UnitOfWorkFactory
    from temporalfacts.domain.resolution.entity_resolver import ResolvedEntity
    from temporalfacts.domain.resolution.fact_resolver import FactConflict
    from temporalfacts.domain.temporal.diff import FactDiff
    from temporalfacts.domain.temporal.query import StatusFilter
    from temporalfacts.domain.temporal.timeline import Timeline


class FactEngine:
    """Every upward-facing operation of the knowledge engine behind one object.

    The services are also reachable as attributes (``entities``, ``facts``,
    ``resolver``, ``temporal``) for callers needing the full surface.
    """

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config or get_engine_config()
        self.unit_of_work_factory = unit_of_work_factory
        self.entities = EntityResolver(unit_of_work_factory, self.config)
        self.facts = FactStore(unit_of_work_factory, self.entities)
        self.resolver = FactResolver(unit_of_work_factory, self.facts, self.config)
        self.temporal = TemporalQueryEngine(unit_of_work_factory)
        self.coordinator = BatchCoordinator.from_config(self.config)
        self.extraction = ExtractionPipeline(unit_of_work_factory, self.facts, self.coordinator)
        self.resolution = ResolutionPipeline(self.coordinator, self.entities, self.resolver)

    @classmethod
    def open(
        cls,
        *,
        config: EngineConfig | None = None,
        engine: Engine | None = None,
        database_uri: str | None = None,
        force: bool = False,
    ) -> FactEngine:
        """Start the SQLAlchemy adapter and build an engine on top of it."""

        startup(engine=engine, database_uri=database_uri, force=force)
        return cls(SqlAlchemyUnitOfWork, config)

    # Entities ----------------------------------------------------------------

    def create_entity(
        self,
        name: str,
        entity_type: EntityType,
        aliases: Iterable[str] = (),
        metadata: Mapping[str, Any] | None = None,
    ) -> Entity:
        return self.entities.create(name, entity_type, aliases, metadata)

    def resolve_entity(
        self, name: str, entity_type: EntityType | None = None
    ) -> ResolvedEntity | None:
        return self.entities.resolve(name, entity_type)

    def add_alias(
        self,
        entity_id: UUID,
        text: str,
        kind: AliasKind | None = None,
        confidence: float = 1.0,
    ) -> EntityAlias | None:
        return self.entities.add_alias(entity_id, text, kind, confidence)

    def merge_entities(self, keep_id: UUID, merge_id: UUID) -> Entity:
        return self.entities.merge(keep_id, merge_id)

    def canonical_entity(self, entity_id: UUID) -> Entity:
        return self.entities.canonical_entity(entity_id)

    # Facts -------------------------------------------------------------------

    def create_fact(
        self,
        text: str,
        valid_at: date | datetime,
        invalid_at: date | datetime | None = None,
        mentions: Iterable[MentionInput] = (),
        sources: Iterable[SourceInput] = (),
        confidence: float = 1.0,
        extraction_method: ExtractionMethod = ExtractionMethod.MANUAL,
        metadata: Mapping[str, Any] | None = None,
    ) -> Fact:
        return self.facts.create(
            text,
            valid_at,
            invalid_at,
            mentions,
            sources,
            confidence,
            extraction_method,
            metadata,
        )

    def supersede(
        self,
        old_fact_id: UUID,
        new_text: str,
        valid_at: date | datetime,
        mentions: Sequence[MentionInput] | None = None,
    ) -> Fact:
        return self.resolver.supersede(old_fact_id, new_text, valid_at, mentions)

    def corroborate(self, fact_id: UUID, other_fact_id: UUID) -> Fact:
        return self.resolver.corroborate(fact_id, other_fact_id)

    def synthesize(
        self,
        source_fact_ids: Sequence[UUID],
        text: str,
        valid_at: date | datetime,
        invalid_at: date | datetime | None = None,
    ) -> Fact:
        return self.resolver.synthesize(source_fact_ids, text, valid_at, invalid_at)

    def invalidate(self, fact_id: UUID, at: date | datetime) -> Fact:
        return self.resolver.invalidate(fact_id, at)

    def find_conflicts(
        self, entity_id: UUID | None = None, topic: str | None = None
    ) -> list[FactConflict]:
        return self.resolver.find_conflicts(entity_id, topic)

    def resolve_conflict(
        self,
        keep_id: UUID,
        supersede_ids: Sequence[UUID],
        reason: str | None = None,
    ) -> Fact:
        return self.resolver.resolve_conflict(keep_id, supersede_ids, reason)

    # Temporal queries ----------------------------------------------------------

    def query(
        self,
        topic: str | None = None,
        at: date | datetime | None = None,
        entity_id: UUID | None = None,
        status: StatusFilter = FactStatus.CANONICAL,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        limit: int | None = None,
    ) -> list[Fact]:
        return self.temporal.query(topic, at, entity_id, status, start, end, limit)

    def timeline(
        self,
        entity_id: UUID,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> Timeline:
        return self.temporal.timeline(entity_id, start, end)

    def diff(
        self,
        start: date | datetime,
        end: date | datetime,
        topic: str | None = None,
        entity_id: UUID | None = None,
    ) -> FactDiff:
        return self.temporal.diff(start, end, topic, entity_id)

    # Batches -----------------------------------------------------------------

    def process[TItem, TValue](
        self,
        items: Iterable[TItem],
        operation: Operation[TItem, TValue],
        *,
        item_id: Callable[[TItem, int], ItemId] = default_item_id,
    ) -> list[BatchResult[TValue]]:
        return self.coordinator.process(items, operation, item_id=item_id)

    def process_parallel[TItem, TValue](
        self,
        items: Iterable[TItem],
        operation: Operation[TItem, TValue],
        *,
        item_id: Callable[[TItem, int], ItemId] = default_item_id,
    ) -> list[BatchResult[TValue]]:
        return self.coordinator.process_parallel(items, operation, item_id=item_id)

    def extract(
        self,
        sources: Iterable[SourceDocument],
        extractor: FactExtractor,
        *,
        parallel: bool = False,
    ) -> list[BatchResult[ExtractionOutcome]]:
        if parallel:
            return self.extraction.process_parallel(sources, extractor)
        return self.extraction.process(sources, extractor)

    def batch_resolve_entities(
        self,
        names: Iterable[str],
        entity_type: EntityType | None = None,
        *,
        parallel: bool = True,
    ) -> list[BatchResult[ResolvedEntity | None]]:
        return self.resolution.resolve_entities(names, entity_type, parallel=parallel)

    def detect_fact_conflicts(
        self,
        entity_ids: Iterable[UUID],
        *,
        parallel: bool = True,
    ) -> list[BatchResult[list[FactConflict]]]:
        return self.resolution.detect_conflicts(entity_ids, parallel=parallel)
