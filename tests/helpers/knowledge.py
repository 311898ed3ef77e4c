"""Reusable builders and fakes for fact and entity tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from temporalfacts.domain.model import Fact, FactStatus, MentionRole

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from uuid import UUID

    from temporalfacts.domain.pipeline.extraction import DraftFact


def utc(year: int, month: int = 1, day: int = 1) -> datetime:
    return datetime(year, month, day, tzinfo=UTC)


def make_fact(
    text: str,
    valid_at: datetime,
    invalid_at: datetime | None = None,
    *,
    status: FactStatus = FactStatus.CANONICAL,
    entity_id: UUID | None = None,
    role: MentionRole | None = MentionRole.SUBJECT,
) -> Fact:
    """Create an unsaved fact, optionally mentioning one entity."""

    fact = Fact(text=text, valid_at=valid_at, invalid_at=invalid_at, status=status)
    if entity_id is not None:
        fact.add_mention(entity_id=entity_id, mention_text=text.split(" ")[0], role=role)
    return fact


@dataclass(frozen=True)
class Document:
    id: str
    text: str
    captured_at: datetime = field(default_factory=lambda: utc(2024, 6, 1))


@dataclass
class StaticExtractor:
    """Return prepared drafts per source id; listed ids raise instead."""

    drafts: Mapping[str, Iterable[DraftFact | Mapping[str, Any]]]
    failing: frozenset[str] = frozenset()
    seen: list[str] = field(default_factory=list[str])

    def extract(self, source: Document) -> Iterable[DraftFact | Mapping[str, Any]]:
        self.seen.append(source.id)
        if source.id in self.failing:
            raise RuntimeError(f"extractor failed on {source.id}")
        return list(self.drafts.get(source.id, ()))
