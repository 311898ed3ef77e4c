"""Batch entity resolution and conflict detection."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from temporalfacts.domain.model import EntityType
    from temporalfacts.domain.pipeline.coordinator import BatchCoordinator, BatchResult
    from temporalfacts.domain.resolution.entity_resolver import EntityResolver, ResolvedEntity
    from temporalfacts.domain.resolution.fact_resolver import FactConflict, FactResolver


def _name_id(name: str, index: int) -> str:
    _ = index
    return name


def _entity_id(entity_id: UUID, index: int) -> UUID:
    _ = index
    return entity_id


class ResolutionPipeline:
    """Run resolver lookups over many inputs, one unit of work per item.

    ``resolve_entities`` only looks names up: an unknown name yields a
    successful result whose value is ``None``. Nothing is created.
    """

    def __init__(
        self,
        coordinator: BatchCoordinator,
        entity_resolver: EntityResolver,
        fact_resolver: FactResolver,
    ) -> None:
        self._coordinator = coordinator
        self._entities = entity_resolver
        self._facts = fact_resolver

    def resolve_entities(
        self,
        names: Iterable[str],
        entity_type: EntityType | None = None,
        *,
        parallel: bool = True,
    ) -> list[BatchResult[ResolvedEntity | None]]:
        def resolve_one(name: str) -> ResolvedEntity | None:
            return self._entities.resolve(name, entity_type)

        run = self._coordinator.process_parallel if parallel else self._coordinator.process
        return run(list(names), resolve_one, item_id=_name_id)

    def detect_conflicts(
        self,
        entity_ids: Iterable[UUID],
        *,
        parallel: bool = True,
    ) -> list[BatchResult[list[FactConflict]]]:
        def conflicts_for(entity_id: UUID) -> list[FactConflict]:
            return self._facts.find_conflicts(entity_id=entity_id)

        run = self._coordinator.process_parallel if parallel else self._coordinator.process
        return run(list(entity_ids), conflicts_for, item_id=_entity_id)
