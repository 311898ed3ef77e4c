"""Point-in-time and range queries over facts.

A :class:`FactQuery` is an immutable description of what to fetch;
:func:`execute_query` is the only place that turns one into results. Filters
apply in a fixed order: status view, temporal containment or overlap, entity,
then topic. Results are ordered by ``valid_at`` descending, ties by id.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Final, Literal

from temporalfacts.domain.errors import ValidationError
from temporalfacts.domain.model import FactStatus
from temporalfacts.domain.model.primitives import as_optional_utc, utc_now
from temporalfacts.domain.resolution.entity_resolver import follow_canonical

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from uuid import UUID

    from temporalfacts.domain.model import Fact
    from temporalfacts.domain.ports.search import FactSearch
    from temporalfacts.domain.ports.unit_of_work import KnowledgeUnitOfWork

ALL_STATUSES: Final = "all"

type StatusFilter = FactStatus | Literal["all"]

# Corroboration strengthens a canonical fact; it must stay visible.
CANONICAL_VIEW: Final[frozenset[FactStatus]] = frozenset(
    {FactStatus.CANONICAL, FactStatus.CORROBORATED}
)


def statuses_for(status: StatusFilter) -> frozenset[FactStatus] | None:
    """Statuses admitted by a status filter; ``None`` admits every status."""

    if status == ALL_STATUSES:
        return None
    status = FactStatus(status)
    if status is FactStatus.CANONICAL:
        return CANONICAL_VIEW
    return frozenset({status})


@dataclass(frozen=True, slots=True)
class FactQuery:
    topic: str | None = None
    at: datetime | None = None
    entity_id: UUID | None = None
    status: StatusFilter = FactStatus.CANONICAL
    start: datetime | None = None
    end: datetime | None = None
    limit: int | None = None
    current_only: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "at", as_optional_utc(self.at))
        object.__setattr__(self, "start", as_optional_utc(self.start))
        object.__setattr__(self, "end", as_optional_utc(self.end))
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValidationError("query start must not be after end")
        if self.limit is not None and self.limit < 1:
            raise ValidationError("query limit must be positive")
        if self.status != ALL_STATUSES:
            object.__setattr__(self, "status", FactStatus(self.status))

    @property
    def statuses(self) -> frozenset[FactStatus] | None:
        return statuses_for(self.status)

    @property
    def has_range(self) -> bool:
        return self.start is not None or self.end is not None

    def resolved(self, *, now: datetime | None = None) -> FactQuery:
        """Pin an implicit "currently valid" filter to a concrete instant."""
        if self.at is None and not self.has_range and self.current_only:
            return replace(self, at=now or utc_now())
        return self


def execute_query(
    uow: KnowledgeUnitOfWork,
    spec: FactQuery,
    search: FactSearch | None = None,
    *,
    now: datetime | None = None,
) -> list[Fact]:
    repositories = uow.repositories
    spec = spec.resolved(now=now)

    if spec.entity_id is not None:
        canonical = follow_canonical(repositories.entities, spec.entity_id)
        spec = replace(spec, entity_id=canonical.id)

    fact_ids: list[UUID] | None = None
    if spec.topic:
        fact_ids = list((search or repositories.search).search(spec.topic))
        if not fact_ids:
            return []

    return repositories.facts.query(spec, fact_ids=fact_ids)


def order_for_query(facts: Iterable[Fact]) -> list[Fact]:
    """Order facts the way query results are ordered."""

    by_id = sorted(facts, key=lambda fact: fact.id)
    return sorted(by_id, key=lambda fact: fact.valid_at, reverse=True)
