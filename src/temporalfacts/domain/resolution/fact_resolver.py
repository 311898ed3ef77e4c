"""Fact lifecycle operations: supersession, corroboration, synthesis and conflicts."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from logging import getLogger
from statistics import fmean
from typing import TYPE_CHECKING

from temporalfacts.config import EngineConfig
from temporalfacts.domain.errors import ConflictError, NotFoundError, ValidationError
from temporalfacts.domain.fact_store import MentionInput, SourceInput, require_fact
from temporalfacts.domain.model import ExtractionMethod, FactStatus, SourceKind, interval
from temporalfacts.domain.model.primitives import as_optional_utc, as_utc
from temporalfacts.domain.ports.unit_of_work import transaction_scope
from temporalfacts.domain.resolution.entity_resolver import follow_canonical
from temporalfacts.domain.resolution.similarity import text_similarity
from temporalfacts.domain.temporal.query import FactQuery, execute_query

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import date, datetime
    from uuid import UUID

    from temporalfacts.domain.fact_store import FactStore
    from temporalfacts.domain.model import Fact, MentionRole
    from temporalfacts.domain.ports.unit_of_work import KnowledgeUnitOfWork, UnitOfWorkFactory

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FactConflict:
    first: Fact
    second: Fact
    similarity: float
    shared_entity_ids: frozenset[UUID]


class FactResolver:
    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        store: FactStore,
        config: EngineConfig | None = None,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._store = store
        self.config = config or EngineConfig()

    def supersede(
        self,
        old_fact_id: UUID,
        new_text: str,
        valid_at: date | datetime,
        mentions: Sequence[MentionInput] | None = None,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Fact:
        """Replace a fact by a new canonical one from ``valid_at`` onwards.

        Both writes happen in one transaction. Without ``mentions`` the new
        fact copies the old fact's mentions; sources are always copied.
        """
        moment = as_utc(valid_at)
        with transaction_scope(self._uow_factory, uow) as scope:
            old = require_fact(scope.repositories.facts, old_fact_id)
            if old.is_superseded:
                raise ConflictError(
                    f"fact {old.id} is already superseded by {old.superseded_by_id}"
                )
            if moment <= old.valid_at:
                raise ValidationError(
                    f"replacement valid_at {moment.isoformat()} must be after "
                    f"{old.valid_at.isoformat()}"
                )
            if old.status not in {FactStatus.CANONICAL, FactStatus.CORROBORATED}:
                raise ConflictError(f"fact {old.id} with status {old.status} cannot be superseded")

            new_fact = self._store.create(
                new_text,
                moment,
                mentions=mentions if mentions is not None else _copied_mentions([old]),
                sources=[
                    SourceInput(
                        source_id=source.source_id,
                        kind=source.kind,
                        excerpt=source.excerpt,
                        confidence=source.confidence,
                    )
                    for source in old.sources
                ],
                confidence=old.confidence,
                extraction_method=old.extraction_method,
                uow=scope,
            )
            old.mark_superseded(by=new_fact.id, at=moment)
            log.info("Superseded fact %s by %s at %s", old.id, new_fact.id, moment)
            return new_fact

    def corroborate(
        self,
        fact_id: UUID,
        other_fact_id: UUID,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Fact:
        if fact_id == other_fact_id:
            raise ValidationError("a fact cannot corroborate itself")
        with transaction_scope(self._uow_factory, uow) as scope:
            facts = scope.repositories.facts
            fact = require_fact(facts, fact_id)
            require_fact(facts, other_fact_id)
            promoted = fact.add_corroboration(
                other_fact_id, threshold=self.config.corroboration_threshold
            )
            if promoted:
                log.info(
                    "Fact %s corroborated by %d facts", fact.id, len(fact.corroborated_by_ids)
                )
            return fact

    def synthesize(
        self,
        source_fact_ids: Sequence[UUID],
        text: str,
        valid_at: date | datetime,
        invalid_at: date | datetime | None = None,
        mentions: Sequence[MentionInput] | None = None,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Fact:
        """Derive a new fact from existing ones, leaving the sources untouched."""
        source_ids = tuple(dict.fromkeys(source_fact_ids))
        if not source_ids:
            raise ValidationError("synthesis needs at least one source fact")
        with transaction_scope(self._uow_factory, uow) as scope:
            found = {fact.id: fact for fact in scope.repositories.facts.get_many(source_ids)}
            missing = [str(fact_id) for fact_id in source_ids if fact_id not in found]
            if missing:
                raise NotFoundError(f"source facts do not exist: {', '.join(missing)}")
            sources = [found[fact_id] for fact_id in source_ids]

            synthesized = self._store.create(
                text,
                valid_at,
                invalid_at,
                mentions=mentions if mentions is not None else _copied_mentions(sources),
                sources=[
                    SourceInput(
                        source_id=link.source_id,
                        kind=SourceKind.SUPPORTING,
                        excerpt=link.excerpt,
                        confidence=link.confidence,
                    )
                    for fact in sources
                    for link in fact.sources
                ],
                confidence=fmean(fact.confidence for fact in sources),
                extraction_method=ExtractionMethod.SYNTHESIZED,
                status=FactStatus.SYNTHESIZED,
                derived_from_ids=source_ids,
                uow=scope,
            )
            log.info("Synthesized fact %s from %d facts", synthesized.id, len(sources))
            return synthesized

    def invalidate(
        self,
        fact_id: UUID,
        at: date | datetime,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Fact:
        """End a fact's validity at ``at`` without touching its status."""
        with transaction_scope(self._uow_factory, uow) as scope:
            fact = require_fact(scope.repositories.facts, fact_id)
            fact.invalidate(at)
            log.info("Invalidated fact %s at %s", fact.id, fact.invalid_at)
            return fact

    def find_conflicts(
        self,
        entity_id: UUID | None = None,
        topic: str | None = None,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> list[FactConflict]:
        """Live facts that overlap in time, share an entity role and read alike.

        Near-identical wording (similarity at or above the upper bound) is a
        restatement, not a conflict.
        """
        with transaction_scope(self._uow_factory, uow) as scope:
            candidates = execute_query(
                scope, FactQuery(topic=topic, entity_id=entity_id, current_only=False)
            )
        return self._conflicts_among(candidates)

    def _conflicts_among(self, facts: Iterable[Fact]) -> list[FactConflict]:
        low = self.config.conflict_min_similarity
        high = self.config.conflict_max_similarity
        conflicts: list[FactConflict] = []
        for first, second in combinations(facts, 2):
            if not interval.intervals_overlap(first.window, second.window):
                continue
            shared = first.mention_contexts & second.mention_contexts
            if not shared:
                continue
            score = text_similarity(first.text, second.text)
            if low <= score < high:
                conflicts.append(
                    FactConflict(
                        first=first,
                        second=second,
                        similarity=score,
                        shared_entity_ids=frozenset(entity_id for entity_id, _ in shared),
                    )
                )
        conflicts.sort(key=lambda conflict: conflict.similarity, reverse=True)
        return conflicts

    def resolve_conflict(
        self,
        keep_id: UUID,
        supersede_ids: Sequence[UUID],
        reason: str | None = None,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Fact:
        """Keep one fact and end the others at the kept fact's ``valid_at``.

        No new fact is created. ``reason`` is stored as ``supersede_reason`` in
        each superseded fact's metadata.
        """
        if keep_id in supersede_ids:
            raise ValidationError("the kept fact cannot also be superseded")
        with transaction_scope(self._uow_factory, uow) as scope:
            facts = scope.repositories.facts
            keep = require_fact(facts, keep_id)
            if keep.is_superseded:
                raise ConflictError(f"fact {keep.id} is superseded and cannot be kept")
            for fact_id in dict.fromkeys(supersede_ids):
                fact = require_fact(facts, fact_id)
                fact.mark_superseded(by=keep.id, at=keep.valid_at, reason=reason)
            log.info("Resolved conflict keeping %s over %d facts", keep.id, len(supersede_ids))
            return keep

    def build_timeline_fact(
        self,
        entity_id: UUID,
        topic: str | None = None,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Fact | None:
        """Synthesize one fact spanning an entity's recorded history.

        The span stays open while any contributing fact is still open.
        """
        with transaction_scope(self._uow_factory, uow) as scope:
            repositories = scope.repositories
            entity = follow_canonical(repositories.entities, entity_id)
            history = [
                fact
                for fact in repositories.facts.for_entity(entity.id)
                if not fact.is_synthesized
            ]
            if topic:
                matching = set(repositories.search.search(topic))
                history = [fact for fact in history if fact.id in matching]
            if not history:
                return None

            start = history[0].valid_at
            ends = [fact.invalid_at for fact in history]
            end = None if None in ends else max(end for end in ends if end is not None)
            text = f"{entity.canonical_name}: {topic or 'timeline'} from {start.date()}"
            if end is not None:
                text += f" to {end.date()}"
            return self.synthesize(
                [fact.id for fact in history],
                text,
                start,
                as_optional_utc(end),
                uow=scope,
            )


def _copied_mentions(facts: Iterable[Fact]) -> list[MentionInput]:
    """Mentions of ``facts``, keeping the most confident one per (entity, role)."""

    best: dict[tuple[UUID, MentionRole | None], MentionInput] = {}
    for fact in facts:
        for mention in fact.mentions:
            key = (mention.entity_id, mention.mention_role)
            current = best.get(key)
            if current is None or mention.confidence > current.confidence:
                best[key] = MentionInput(
                    name=mention.mention_text,
                    role=mention.mention_role,
                    confidence=mention.confidence,
                    entity_id=mention.entity_id,
                )
    return list(best.values())
