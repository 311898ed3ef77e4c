"""Snapshot comparison between two instants.

Facts are matched by their comparable key (normalized text), not by id: a
supersession replaces the id while the statement may stay the same. Two
different facts with identical wording therefore count as one key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from temporalfacts.domain.model import ComparableKey, Fact


@dataclass(frozen=True, slots=True)
class FactDiff:
    added: tuple[Fact, ...]
    removed: tuple[Fact, ...]
    unchanged: tuple[Fact, ...]

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed)


def _keyed(facts: Iterable[Fact]) -> dict[ComparableKey, Fact]:
    keyed: dict[ComparableKey, Fact] = {}
    for fact in facts:
        keyed.setdefault(fact.comparable_key, fact)
    return keyed


def diff_snapshots(before: Iterable[Fact], after: Iterable[Fact]) -> FactDiff:
    """Compare two snapshots; ``unchanged`` reports facts from ``before``."""

    before_keyed = _keyed(before)
    after_keyed = _keyed(after)
    return FactDiff(
        added=tuple(fact for key, fact in after_keyed.items() if key not in before_keyed),
        removed=tuple(fact for key, fact in before_keyed.items() if key not in after_keyed),
        unchanged=tuple(fact for key, fact in before_keyed.items() if key in after_keyed),
    )
