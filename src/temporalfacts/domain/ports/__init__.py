"""Domain ports (protocols implemented by adapters)."""

from __future__ import annotations

from temporalfacts.domain.ports.extraction import FactExtractor, SourceDocument
from temporalfacts.domain.ports.persistence import EntityRepository, FactRepository, Repository
from temporalfacts.domain.ports.search import FactSearch
from temporalfacts.domain.ports.unit_of_work import (
    KnowledgeRepositories,
    KnowledgeUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
    UnitOfWorkFactory,
    transaction_scope,
)

__all__ = [
    "EntityRepository",
    "FactExtractor",
    "FactRepository",
    "FactSearch",
    "KnowledgeRepositories",
    "KnowledgeUnitOfWork",
    "Repository",
    "RepositoryCollection",
    "SourceDocument",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "transaction_scope",
]
