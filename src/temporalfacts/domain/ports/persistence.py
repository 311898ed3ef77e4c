"""Ports for persisting entities and facts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from temporalfacts.domain.model import Entity, Fact

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from datetime import datetime
    from uuid import UUID

    from temporalfacts.domain.model import (
        EntityMergeRecord,
        EntityType,
        ExtractionMethod,
        FactStatus,
    )
    from temporalfacts.domain.temporal.query import FactQuery


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...

    def get(self, entity_id: UUID) -> TEntity | None: ...


@runtime_checkable
class EntityRepository(Repository[Entity], Protocol):
    """Persistence contract for entities and their merge forest."""

    def find_by_name(self, name: str, entity_type: EntityType | None = None) -> Entity | None:
        """Case-insensitive canonical-name lookup among non-merged entities."""
        ...

    def find_by_alias(self, text: str, entity_type: EntityType | None = None) -> Entity | None:
        """Case-insensitive alias lookup among non-merged entities."""
        ...

    def candidates(self, entity_type: EntityType | None = None) -> Sequence[Entity]:
        """All non-merged entities, optionally restricted to one type."""
        ...

    def mention_count(self, entity_id: UUID) -> int: ...

    def reassign_mentions(self, source_id: UUID, target_id: UUID) -> int: ...

    def add_merge_record(self, record: EntityMergeRecord) -> None: ...

    def merge_history(self, entity_id: UUID) -> Sequence[EntityMergeRecord]: ...


@runtime_checkable
class FactRepository(Repository[Fact], Protocol):
    """Persistence contract for facts and the temporal index."""

    def add_unique(self, fact: Fact) -> Fact:
        """Insert ``fact`` unless one with the same digest and valid_at exists.

        Returns the stored fact: ``fact`` itself or the pre-existing row.
        """
        ...

    def get_many(self, fact_ids: Collection[UUID]) -> list[Fact]: ...

    def find_by_identity(self, digest: str, valid_at: datetime) -> Fact | None: ...

    def query(self, spec: FactQuery, *, fact_ids: Collection[UUID] | None = None) -> list[Fact]:
        """Apply a query spec; ``fact_ids`` restricts to a candidate id set."""
        ...

    def for_entity(
        self,
        entity_id: UUID,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Fact]:
        """Facts of every status mentioning the entity, ascending by valid_at."""
        ...

    def count_by_status(self) -> dict[FactStatus, int]: ...

    def count_by_method(self) -> dict[ExtractionMethod, int]: ...
