"""Facts: time-bounded assertions with entity mentions and source links.

A fact holds over the half-open interval ``[valid_at, invalid_at)``. Status
moves through a small state machine::

    canonical ──► corroborated
        │               │
        └──► superseded ◄┘

``superseded`` is terminal and ``synthesized`` is an initial status that no
operation moves a fact out of. Facts are never deleted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Final
from uuid import UUID

from temporalfacts.domain.errors import ConflictError, ValidationError
from temporalfacts.domain.model import interval
from temporalfacts.domain.model.enums import (
    ExtractionMethod,
    FactStatus,
    MentionRole,
    SourceKind,
)
from temporalfacts.domain.model.primitives import (
    ComparableKey,
    as_optional_utc,
    as_utc,
    content_digest,
    new_id,
    normalize_text,
    utc_now,
    validate_confidence,
)

if TYPE_CHECKING:
    from datetime import timedelta

ALLOWED_TRANSITIONS: Final[dict[FactStatus, frozenset[FactStatus]]] = {
    FactStatus.CANONICAL: frozenset({FactStatus.CORROBORATED, FactStatus.SUPERSEDED}),
    FactStatus.CORROBORATED: frozenset({FactStatus.SUPERSEDED}),
    FactStatus.SUPERSEDED: frozenset(),
    FactStatus.SYNTHESIZED: frozenset(),
}


@dataclass(eq=False, kw_only=True)
class EntityMention:
    id: UUID = field(default_factory=new_id)
    fact_id: UUID | None = None
    entity_id: UUID
    mention_text: str
    mention_role: MentionRole | None = None
    confidence: float = 1.0

    def __post_init__(self) -> None:
        self.confidence = validate_confidence(self.confidence)

    def same_mention(self, entity_id: UUID, mention_text: str) -> bool:
        return self.entity_id == entity_id and self.mention_text == mention_text


@dataclass(eq=False, kw_only=True)
class FactSource:
    id: UUID = field(default_factory=new_id)
    fact_id: UUID | None = None
    source_id: str
    kind: SourceKind = SourceKind.PRIMARY
    excerpt: str | None = None
    confidence: float = 1.0

    def __post_init__(self) -> None:
        if not self.source_id:
            raise ValidationError("source_id must not be empty")
        self.confidence = validate_confidence(self.confidence)


@dataclass(eq=False, kw_only=True)
class Fact:
    id: UUID = field(default_factory=new_id)
    text: str
    valid_at: datetime
    invalid_at: datetime | None = None
    status: FactStatus = FactStatus.CANONICAL
    superseded_by_id: UUID | None = None
    derived_from_ids: tuple[UUID, ...] = ()
    corroborated_by_ids: tuple[UUID, ...] = ()
    confidence: float = 1.0
    extraction_method: ExtractionMethod = ExtractionMethod.MANUAL
    metadata: dict[str, Any] = field(default_factory=dict[str, Any])
    created_at: datetime = field(default_factory=utc_now)
    digest: str = field(init=False)

    _mentions: list[EntityMention] = field(default_factory=list["EntityMention"], repr=False)
    _sources: list[FactSource] = field(default_factory=list["FactSource"], repr=False)

    def __post_init__(self) -> None:
        self.text = self.text.strip()
        if not self.text:
            raise ValidationError("fact text must not be blank")
        self.valid_at = as_utc(self.valid_at)
        self.invalid_at = as_optional_utc(self.invalid_at)
        interval.validate_interval(self.valid_at, self.invalid_at)
        self.confidence = validate_confidence(self.confidence)
        self.digest = content_digest(self.text)

    # Views -------------------------------------------------------------------

    @property
    def mentions(self) -> tuple[EntityMention, ...]:
        return tuple(self._mentions)

    @property
    def sources(self) -> tuple[FactSource, ...]:
        return tuple(self._sources)

    @property
    def entity_ids(self) -> frozenset[UUID]:
        return frozenset(mention.entity_id for mention in self._mentions)

    @property
    def mention_contexts(self) -> frozenset[tuple[UUID, MentionRole | None]]:
        return frozenset((m.entity_id, m.mention_role) for m in self._mentions)

    @property
    def comparable_key(self) -> ComparableKey:
        return normalize_text(self.text)

    @property
    def normalized_text(self) -> str:
        return normalize_text(self.text)

    @property
    def window(self) -> tuple[datetime, datetime | None]:
        return (self.valid_at, self.invalid_at)

    @property
    def is_superseded(self) -> bool:
        return self.status is FactStatus.SUPERSEDED

    @property
    def is_synthesized(self) -> bool:
        return self.status is FactStatus.SYNTHESIZED

    def duration(self) -> timedelta | None:
        if self.invalid_at is None:
            return None
        return self.invalid_at - self.valid_at

    # Interval predicates -------------------------------------------------------

    def valid_at_point(self, at: date | datetime) -> bool:
        return interval.contains(self.valid_at, self.invalid_at, as_utc(at))

    def currently_valid(self, *, now: datetime | None = None) -> bool:
        return self.valid_at_point(now or utc_now())

    def valid_between(self, start: date | datetime | None, end: date | datetime | None) -> bool:
        return interval.overlaps(
            self.valid_at, self.invalid_at, as_optional_utc(start), as_optional_utc(end)
        )

    def became_valid_between(self, start: date | datetime, end: date | datetime) -> bool:
        return interval.starts_between(self.valid_at, as_utc(start), as_utc(end))

    def became_invalid_between(self, start: date | datetime, end: date | datetime) -> bool:
        return interval.ends_between(self.invalid_at, as_utc(start), as_utc(end))

    # Commands ----------------------------------------------------------------

    def add_mention(
        self,
        *,
        entity_id: UUID,
        mention_text: str,
        role: MentionRole | None = None,
        confidence: float = 1.0,
    ) -> EntityMention:
        for existing in self._mentions:
            if existing.same_mention(entity_id, mention_text):
                return existing
        mention = EntityMention(
            fact_id=self.id,
            entity_id=entity_id,
            mention_text=mention_text,
            mention_role=role,
            confidence=confidence,
        )
        self._mentions.append(mention)
        return mention

    def add_source(
        self,
        *,
        source_id: str,
        kind: SourceKind = SourceKind.PRIMARY,
        excerpt: str | None = None,
        confidence: float = 1.0,
    ) -> FactSource:
        for existing in self._sources:
            if existing.source_id == source_id:
                return existing
        source = FactSource(
            fact_id=self.id,
            source_id=source_id,
            kind=kind,
            excerpt=excerpt,
            confidence=confidence,
        )
        self._sources.append(source)
        return source

    def transition(self, target: FactStatus) -> None:
        """Move to ``target`` status, enforcing the status state machine."""
        if target is self.status:
            return
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise ConflictError(
                f"fact {self.id} cannot move from {self.status} to {target}"
            )
        self.status = target

    def invalidate(self, at: date | datetime) -> None:
        if self.status is FactStatus.SUPERSEDED:
            raise ConflictError(
                f"fact {self.id} is superseded by {self.superseded_by_id}; its end is fixed"
            )
        moment = as_utc(at)
        if moment <= self.valid_at:
            raise ValidationError(
                f"invalidation time {moment.isoformat()} must be after valid_at "
                f"{self.valid_at.isoformat()}"
            )
        self.invalid_at = moment

    def mark_superseded(
        self,
        *,
        by: UUID,
        at: datetime,
        reason: str | None = None,
    ) -> None:
        if self.status is FactStatus.SUPERSEDED:
            raise ConflictError(f"fact {self.id} is already superseded by {self.superseded_by_id}")
        if by == self.id:
            raise ValidationError("a fact cannot supersede itself")
        moment = as_utc(at)
        interval.validate_interval(self.valid_at, moment)
        self.transition(FactStatus.SUPERSEDED)
        self.invalid_at = moment
        self.superseded_by_id = by
        if reason is not None:
            # reassign so the JSON column is flagged dirty
            self.metadata = {**self.metadata, "supersede_reason": reason}

    def add_corroboration(self, other_id: UUID, *, threshold: int) -> bool:
        """Record ``other_id`` as corroborating evidence.

        Returns whether the status moved to ``corroborated``.
        """
        if other_id == self.id:
            raise ValidationError("a fact cannot corroborate itself")
        if other_id not in self.corroborated_by_ids:
            self.corroborated_by_ids = (*self.corroborated_by_ids, other_id)
        if (
            self.status is FactStatus.CANONICAL
            and len(self.corroborated_by_ids) >= threshold
        ):
            self.transition(FactStatus.CORROBORATED)
            return True
        return False


def valid_at_point(fact: Fact, at: date | datetime) -> bool:
    return fact.valid_at_point(at)


def currently_valid(fact: Fact, *, now: datetime | None = None) -> bool:
    return fact.currently_valid(now=now)


def valid_between(fact: Fact, start: date | datetime | None, end: date | datetime | None) -> bool:
    return fact.valid_between(start, end)


def became_valid_between(fact: Fact, start: date | datetime, end: date | datetime) -> bool:
    return fact.became_valid_between(start, end)


def became_invalid_between(fact: Fact, start: date | datetime, end: date | datetime) -> bool:
    return fact.became_invalid_between(start, end)
