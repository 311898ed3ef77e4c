"""Fact creation and lookup.

Creation is idempotent on ``(digest, valid_at)``: the same normalized wording
asserted for the same instant is one fact, however often it is extracted.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from temporalfacts.domain.errors import NotFoundError, ValidationError
from temporalfacts.domain.model import (
    EntityType,
    ExtractionMethod,
    Fact,
    FactStatus,
    MentionRole,
    SourceKind,
)
from temporalfacts.domain.model.primitives import as_optional_utc, as_utc
from temporalfacts.domain.ports.unit_of_work import transaction_scope

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import date, datetime
    from uuid import UUID

    from temporalfacts.domain.model import FactSource
    from temporalfacts.domain.ports.persistence import FactRepository
    from temporalfacts.domain.ports.unit_of_work import KnowledgeUnitOfWork, UnitOfWorkFactory
    from temporalfacts.domain.resolution.entity_resolver import EntityResolver

log = getLogger(__name__)

INITIAL_STATUSES: Final[frozenset[FactStatus]] = frozenset(
    {FactStatus.CANONICAL, FactStatus.SYNTHESIZED}
)


@dataclass(frozen=True, slots=True)
class MentionInput:
    """A named participant of a new fact.

    ``entity_id`` pins the mention to a known entity; otherwise ``name`` is
    resolved (or created) through the entity resolver.
    """

    name: str
    entity_type: EntityType = EntityType.CONCEPT
    role: MentionRole | None = None
    text: str | None = None
    confidence: float = 1.0
    aliases: tuple[str, ...] = ()
    entity_id: UUID | None = None


@dataclass(frozen=True, slots=True)
class SourceInput:
    source_id: str
    kind: SourceKind = SourceKind.PRIMARY
    excerpt: str | None = None
    confidence: float = 1.0


@dataclass(frozen=True, slots=True)
class EvidenceLink:
    fact: Fact
    sources: tuple[FactSource, ...]
    depth: int


@dataclass(frozen=True, slots=True)
class FactStats:
    by_status: dict[FactStatus, int] = field(default_factory=dict[FactStatus, int])
    by_method: dict[ExtractionMethod, int] = field(default_factory=dict[ExtractionMethod, int])

    @property
    def total(self) -> int:
        return sum(self.by_status.values())


class FactStore:
    def __init__(self, unit_of_work_factory: UnitOfWorkFactory, resolver: EntityResolver) -> None:
        self._uow_factory = unit_of_work_factory
        self._resolver = resolver

    def create(
        self,
        text: str,
        valid_at: date | datetime,
        invalid_at: date | datetime | None = None,
        mentions: Iterable[MentionInput] = (),
        sources: Iterable[SourceInput] = (),
        confidence: float = 1.0,
        extraction_method: ExtractionMethod = ExtractionMethod.MANUAL,
        metadata: Mapping[str, Any] | None = None,
        *,
        status: FactStatus = FactStatus.CANONICAL,
        derived_from_ids: tuple[UUID, ...] = (),
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Fact:
        """Create a fact or return the stored one with the same digest and valid_at.

        An existing fact is returned unchanged: new mentions and sources are
        not merged into it.
        """
        if status not in INITIAL_STATUSES:
            raise ValidationError(f"facts cannot be created with status {status}")
        fact = Fact(
            text=text,
            valid_at=as_utc(valid_at),
            invalid_at=as_optional_utc(invalid_at),
            status=status,
            confidence=confidence,
            extraction_method=extraction_method,
            derived_from_ids=derived_from_ids,
            metadata=dict(metadata or {}),
        )
        mention_inputs = list(mentions)
        source_inputs = list(sources)

        with transaction_scope(self._uow_factory, uow) as scope:
            facts = scope.repositories.facts
            existing = facts.find_by_identity(fact.digest, fact.valid_at)
            if existing is not None:
                log.debug("Fact %r at %s already stored as %s", text, fact.valid_at, existing.id)
                return existing

            for mention in mention_inputs:
                self._attach_mention(fact, mention, scope)
            for source in source_inputs:
                fact.add_source(
                    source_id=source.source_id,
                    kind=source.kind,
                    excerpt=source.excerpt,
                    confidence=source.confidence,
                )

            stored = facts.add_unique(fact)
            if stored is fact:
                log.info(
                    "Created %s fact %s valid from %s", stored.status, stored.id, stored.valid_at
                )
            else:
                log.info("Concurrent writer stored fact %r first; reusing %s", text, stored.id)
            return stored

    def _attach_mention(self, fact: Fact, mention: MentionInput, uow: KnowledgeUnitOfWork) -> None:
        if mention.entity_id is not None:
            entity = self._resolver.canonical_entity(mention.entity_id, uow=uow)
        else:
            if not mention.name.strip():
                raise ValidationError("mention name must not be blank")
            entity = self._resolver.resolve_or_create(
                mention.name,
                mention.entity_type,
                mention.aliases,
                uow=uow,
            )
        fact.add_mention(
            entity_id=entity.id,
            mention_text=(mention.text or mention.name).strip() or entity.canonical_name,
            role=mention.role,
            confidence=mention.confidence,
        )

    def get(self, fact_id: UUID, *, uow: KnowledgeUnitOfWork | None = None) -> Fact:
        with transaction_scope(self._uow_factory, uow) as scope:
            return require_fact(scope.repositories.facts, fact_id)

    def find(
        self,
        text: str,
        valid_at: date | datetime,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> Fact | None:
        """Look a fact up by its identity: normalized wording plus valid_at."""
        lookup = Fact(text=text, valid_at=as_utc(valid_at))
        with transaction_scope(self._uow_factory, uow) as scope:
            return scope.repositories.facts.find_by_identity(lookup.digest, lookup.valid_at)

    def evidence_chain(
        self,
        fact_id: UUID,
        *,
        uow: KnowledgeUnitOfWork | None = None,
    ) -> list[EvidenceLink]:
        """Source links of a fact and, breadth first, of the facts it was derived from."""
        with transaction_scope(self._uow_factory, uow) as scope:
            facts = scope.repositories.facts
            root = require_fact(facts, fact_id)
            chain: list[EvidenceLink] = []
            seen: set[UUID] = {root.id}
            pending: deque[tuple[Fact, int]] = deque([(root, 0)])
            while pending:
                fact, depth = pending.popleft()
                chain.append(EvidenceLink(fact=fact, sources=fact.sources, depth=depth))
                parents = [pid for pid in fact.derived_from_ids if pid not in seen]
                seen.update(parents)
                pending.extend((parent, depth + 1) for parent in facts.get_many(parents))
            return chain

    def stats(self, *, uow: KnowledgeUnitOfWork | None = None) -> FactStats:
        with transaction_scope(self._uow_factory, uow) as scope:
            facts = scope.repositories.facts
            return FactStats(by_status=facts.count_by_status(), by_method=facts.count_by_method())


def require_fact(facts: FactRepository, fact_id: UUID) -> Fact:
    fact = facts.get(fact_id)
    if fact is None:
        raise NotFoundError(f"fact {fact_id} does not exist")
    return fact
