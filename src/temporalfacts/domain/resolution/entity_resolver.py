"""Entity identity resolution and the merge forest."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from logging import getLogger
from typing import TYPE_CHECKING, Any

from temporalfacts.config import EngineConfig
from temporalfacts.domain.errors import ConflictError, DataIntegrityError, NotFoundError
from temporalfacts.domain.model import (
    AliasKind,
    Entity,
    EntityMergeRecord,
    EntityType,
    MatchKind,
    ResolutionStatus,
)
from temporalfacts.domain.ports.unit_of_work import transaction_scope
from temporalfacts.domain.resolution.alias_filter import filter_aliases, rejection_reason
from temporalfacts.domain.resolution.similarity import best_match, name_similarity

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from uuid import UUID

    from temporalfacts.domain.model import EntityAlias
    from temporalfacts.domain.ports.persistence import EntityRepository
    from temporalfacts.domain.ports.unit_of_work import KnowledgeUnitOfWork, UnitOfWorkFactory

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedEntity:
    entity: Entity
    confidence: float
    match_kind: MatchKind

    @property
    def is_exact(self) -> bool:
        return self.match_kind is not MatchKind.FUZZY


@dataclass(frozen=True, slots=True)
class DuplicateCandidate:
    first: Entity
    second: Entity
    similarity: float


@dataclass(frozen=True, slots=True)
class EntitySplit:
    """Description of one entity produced by :meth:`EntityResolver.split`."""

    name: str
    entity_type: EntityType | None = None
    aliases: tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict[str, Any])


class EntityResolver:
    """Resolve names to entities through exact, alias and fuzzy tiers.

    Every public method opens its own unit of work unless ``uow`` is passed, in
    which case the work joins the caller's transaction and is not committed here.
    """

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        config: EngineConfig | None = None,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self.config = config or EngineConfig()

    # Lookup ------------------------------------------------------------------

    def resolve(
        self,
        name: str,
        entity_type: EntityType | None = None,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> ResolvedEntity | None:
        if not name or not name.strip():
            return None
        with transaction_scope(self._uow_factory, uow) as scope:
            return self._resolve(scope.repositories.entities, name.strip(), entity_type)

    def _resolve(
        self,
        entities: EntityRepository,
        name: str,
        entity_type: EntityType | None,
    ) -> ResolvedEntity | None:
        exact = entities.find_by_name(name, entity_type)
        if exact is not None:
            log.debug("Resolved %r by canonical name to %s", name, exact.id)
            return ResolvedEntity(entity=exact, confidence=1.0, match_kind=MatchKind.EXACT_NAME)

        aliased = entities.find_by_alias(name, entity_type)
        if aliased is not None:
            log.debug("Resolved %r by alias to %s", name, aliased.id)
            return ResolvedEntity(entity=aliased, confidence=1.0, match_kind=MatchKind.EXACT_ALIAS)

        candidates = entities.candidates(entity_type)
        match = best_match(
            name,
            ((candidate, text) for candidate in candidates for text in candidate.names()),
        )
        if match is None:
            return None
        entity, score = match
        if score < self.config.fuzzy_match_threshold:
            log.debug("Best fuzzy candidate for %r scored %.3f, below threshold", name, score)
            return None
        log.debug("Resolved %r fuzzily to %s (score %.3f)", name, entity.id, score)
        return ResolvedEntity(entity=entity, confidence=score, match_kind=MatchKind.FUZZY)

    def get(self, entity_id: UUID, *, uow: KnowledgeUnitOfWork | None = None) -> Entity:
        with transaction_scope(self._uow_factory, uow) as scope:
            return _require(scope.repositories.entities, entity_id)

    def canonical_entity(
        self,
        entity_id: UUID,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Entity:
        """Follow ``canonical_id`` pointers to the surviving entity.

        Raises :class:`DataIntegrityError` on a cycle or a dangling pointer.
        """
        with transaction_scope(self._uow_factory, uow) as scope:
            return follow_canonical(scope.repositories.entities, entity_id)

    # Creation ----------------------------------------------------------------

    def create(
        self,
        name: str,
        entity_type: EntityType,
        aliases: Iterable[str] = (),
        metadata: Mapping[str, Any] | None = None,
        *,
        status: ResolutionStatus = ResolutionStatus.RESOLVED,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Entity:
        with transaction_scope(self._uow_factory, uow) as scope:
            return self._create(
                scope.repositories.entities, name, entity_type, aliases, metadata, status
            )

    def _create(
        self,
        entities: EntityRepository,
        name: str,
        entity_type: EntityType,
        aliases: Iterable[str],
        metadata: Mapping[str, Any] | None,
        status: ResolutionStatus = ResolutionStatus.RESOLVED,
    ) -> Entity:
        entity = Entity(
            canonical_name=name,
            entity_type=entity_type,
            resolution_status=status,
            metadata=dict(metadata or {}),
        )
        for alias in filter_aliases(aliases, entity.canonical_name):
            entity.add_alias(alias)
        entities.add(entity)
        log.info("Created %s entity %r (%s)", entity_type, entity.canonical_name, entity.id)
        return entity

    def resolve_or_create(
        self,
        name: str,
        entity_type: EntityType,
        aliases: Iterable[str] = (),
        metadata: Mapping[str, Any] | None = None,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Entity:
        """Return the entity ``name`` (or one of ``aliases``) resolves to, else create one.

        A fuzzy match at or above ``auto_merge_threshold`` absorbs ``name`` as an
        alias, so the near-duplicate spelling resolves exactly next time.
        """
        alias_list = list(aliases)
        with transaction_scope(self._uow_factory, uow) as scope:
            entities = scope.repositories.entities
            resolved = self._resolve(entities, name.strip(), entity_type)
            for alias in alias_list:
                if resolved is not None:
                    break
                resolved = self._resolve(entities, alias.strip(), entity_type)

            if resolved is None:
                return self._create(entities, name, entity_type, alias_list, metadata)

            entity = resolved.entity
            harvested = list(alias_list)
            if (
                resolved.match_kind is MatchKind.FUZZY
                and resolved.confidence >= self.config.auto_merge_threshold
            ):
                harvested.insert(0, name)
            for alias in filter_aliases(harvested, entity.canonical_name):
                entity.add_alias(alias)
            return entity

    def add_alias(
        self,
        entity_id: UUID,
        text: str,
        kind: AliasKind | None = None,
        confidence: float = 1.0,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> EntityAlias | None:
        """Attach an alias; inadmissible or duplicate text is silently skipped."""
        with transaction_scope(self._uow_factory, uow) as scope:
            entity = _require(scope.repositories.entities, entity_id)
            reason = rejection_reason(text, entity.canonical_name)
            if reason is not None:
                log.debug("Skipping alias %r for %s: %s", text, entity_id, reason)
                return None
            return entity.add_alias(text, kind=kind, confidence=confidence)

    # Merge forest ------------------------------------------------------------

    def merge(
        self,
        keep_id: UUID,
        merge_id: UUID,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Entity:
        """Fold ``merge_id`` into ``keep_id`` and return the surviving entity."""
        with transaction_scope(self._uow_factory, uow) as scope:
            keep, _ = self._merge(scope.repositories.entities, keep_id, merge_id)
            return keep

    def _merge(
        self,
        entities: EntityRepository,
        keep_id: UUID,
        merge_id: UUID,
    ) -> tuple[Entity, EntityMergeRecord]:
        if keep_id == merge_id:
            raise ConflictError("cannot merge an entity into itself")
        absorbed = _require(entities, merge_id)
        if absorbed.is_merged:
            raise ConflictError(f"entity {merge_id} is already merged into {absorbed.canonical_id}")
        _require(entities, keep_id)
        keep = follow_canonical(entities, keep_id)
        if keep.id == merge_id:
            raise ConflictError(
                f"merging {merge_id} into {keep_id} would create a cycle in the merge forest"
            )

        keep.take_aliases(absorbed)
        keep.add_alias(absorbed.canonical_name, kind=AliasKind.NAME)
        moved = entities.reassign_mentions(absorbed.id, keep.id)
        absorbed.point_to_canonical(keep)

        record = EntityMergeRecord(
            kept_id=keep.id,
            merged_id=absorbed.id,
            merged_name=absorbed.canonical_name,
        )
        entities.add_merge_record(record)
        log.info(
            "Merged entity %r (%s) into %r (%s), moved %d mentions",
            absorbed.canonical_name,
            absorbed.id,
            keep.canonical_name,
            keep.id,
            moved,
        )
        return keep, record

    def split(
        self,
        entity_id: UUID,
        parts: Sequence[EntitySplit],
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> list[Entity]:
        """Mark an ambiguous entity as split and create one entity per part.

        Existing mentions stay on the original entity.
        """
        with transaction_scope(self._uow_factory, uow) as scope:
            entities = scope.repositories.entities
            original = _require(entities, entity_id)
            original.mark_split()
            created = [
                self._create(
                    entities,
                    part.name,
                    part.entity_type or original.entity_type,
                    part.aliases,
                    part.metadata,
                )
                for part in parts
            ]
            log.info("Split entity %s into %d entities", entity_id, len(created))
            return created

    def find_duplicates(
        self,
        threshold: float | None = None,
        entity_type: EntityType | None = None,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> list[DuplicateCandidate]:
        """Pairs of same-typed, non-merged entities with similar names, best first."""
        cutoff = self.config.fuzzy_match_threshold if threshold is None else threshold
        with transaction_scope(self._uow_factory, uow) as scope:
            return _duplicates(scope.repositories.entities.candidates(entity_type), cutoff)

    def auto_merge_duplicates(
        self,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> list[EntityMergeRecord]:
        """Merge duplicate pairs above ``auto_merge_threshold``.

        The entity with more mentions survives; ties keep the first of the pair.
        """
        records: list[EntityMergeRecord] = []
        with transaction_scope(self._uow_factory, uow) as scope:
            entities = scope.repositories.entities
            pairs = _duplicates(entities.candidates(), self.config.auto_merge_threshold)
            for pair in pairs:
                if pair.first.is_merged or pair.second.is_merged:
                    continue
                keep, absorbed = pair.first, pair.second
                if entities.mention_count(absorbed.id) > entities.mention_count(keep.id):
                    keep, absorbed = absorbed, keep
                _, record = self._merge(entities, keep.id, absorbed.id)
                records.append(record)
        log.info("Auto-merged %d duplicate entities", len(records))
        return records


def _require(entities: EntityRepository, entity_id: UUID) -> Entity:
    entity = entities.get(entity_id)
    if entity is None:
        raise NotFoundError(f"entity {entity_id} does not exist")
    return entity


def follow_canonical(entities: EntityRepository, entity_id: UUID) -> Entity:
    entity = _require(entities, entity_id)
    visited = {entity.id}
    while entity.is_merged:
        next_id = entity.canonical_id
        if next_id is None:
            raise DataIntegrityError(f"merged entity {entity.id} has no canonical pointer")
        if next_id in visited:
            raise DataIntegrityError(f"merge cycle detected at entity {next_id}")
        visited.add(next_id)
        successor = entities.get(next_id)
        if successor is None:
            raise DataIntegrityError(f"entity {entity.id} points to missing entity {next_id}")
        entity = successor
    return entity


def _duplicates(candidates: Sequence[Entity], threshold: float) -> list[DuplicateCandidate]:
    found = [
        DuplicateCandidate(first=first, second=second, similarity=score)
        for first, second in combinations(candidates, 2)
        if first.entity_type == second.entity_type
        and (score := name_similarity(first.canonical_name, second.canonical_name)) >= threshold
    ]
    found.sort(key=lambda candidate: candidate.similarity, reverse=True)
    return found
