"""Chronological views over the facts mentioning one entity."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from itertools import combinations, pairwise
from typing import TYPE_CHECKING

from temporalfacts.domain.model import interval
from temporalfacts.domain.model.primitives import as_utc
from temporalfacts.domain.temporal.query import CANONICAL_VIEW, order_for_query

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import date, datetime, timedelta
    from uuid import UUID

    from temporalfacts.domain.model import Fact


@dataclass(frozen=True, slots=True)
class TimelineTransition:
    """Two consecutive timeline facts and the gap between them.

    The gap runs from the end of ``previous`` (or its start while it is still
    open) to the start of ``following``; it is negative when they overlap.
    """

    previous: Fact
    following: Fact
    gap: timedelta

    @property
    def gap_days(self) -> int:
        return self.gap.days


@dataclass(frozen=True, slots=True)
class Timeline:
    """Facts of every status about one entity, ascending by ``valid_at``."""

    entity_id: UUID
    facts: tuple[Fact, ...]

    @classmethod
    def from_facts(cls, entity_id: UUID, facts: list[Fact]) -> Timeline:
        by_id = sorted(facts, key=lambda fact: fact.id)
        return cls(entity_id=entity_id, facts=tuple(sorted(by_id, key=lambda f: f.valid_at)))

    def __iter__(self) -> Iterator[Fact]:
        return iter(self.facts)

    def __len__(self) -> int:
        return len(self.facts)

    def active(self) -> list[Fact]:
        return [fact for fact in self.facts if fact.invalid_at is None]

    def historical(self) -> list[Fact]:
        return [fact for fact in self.facts if fact.invalid_at is not None]

    def state_at(self, at: date | datetime) -> list[Fact]:
        """What was true about the entity at ``at``.

        Same status view, containment predicate and ordering as a point-in-time
        query for this entity, so both always return the same facts.
        """
        moment = as_utc(at)
        return order_for_query(
            fact
            for fact in self.facts
            if fact.status in CANONICAL_VIEW
            and interval.contains(fact.valid_at, fact.invalid_at, moment)
        )

    def between(self, start: date | datetime, end: date | datetime) -> list[Fact]:
        """Facts that became valid inside ``[start, end]``."""
        lower, upper = as_utc(start), as_utc(end)
        return [fact for fact in self.facts if interval.starts_between(fact.valid_at, lower, upper)]

    def by_year(self) -> dict[int, list[Fact]]:
        grouped: defaultdict[int, list[Fact]] = defaultdict(list)
        for fact in self.facts:
            grouped[fact.valid_at.year].append(fact)
        return dict(grouped)

    def by_month(self) -> dict[str, list[Fact]]:
        grouped: defaultdict[str, list[Fact]] = defaultdict(list)
        for fact in self.facts:
            grouped[fact.valid_at.strftime("%Y-%m")].append(fact)
        return dict(grouped)

    def overlapping(self) -> list[tuple[Fact, Fact]]:
        return [
            (first, second)
            for first, second in combinations(self.facts, 2)
            if interval.intervals_overlap(first.window, second.window)
        ]

    def changes_summary(self) -> list[TimelineTransition]:
        return [
            TimelineTransition(
                previous=previous,
                following=following,
                gap=following.valid_at - (previous.invalid_at or previous.valid_at),
            )
            for previous, following in pairwise(self.facts)
        ]
