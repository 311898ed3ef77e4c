"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from temporalfacts.domain.ports.persistence import EntityRepository, FactRepository
    from temporalfacts.domain.ports.search import FactSearch


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class KnowledgeRepositories(RepositoryCollection):
    """Repositories sharing one transaction."""

    entities: EntityRepository
    facts: FactRepository
    search: FactSearch


type KnowledgeUnitOfWork = UnitOfWork[KnowledgeRepositories]

type UnitOfWorkFactory = Callable[[], KnowledgeUnitOfWork]


@contextmanager
def transaction_scope(
    factory: UnitOfWorkFactory,
    uow: KnowledgeUnitOfWork | None = None,
) -> Iterator[KnowledgeUnitOfWork]:
    """Yield ``uow`` when the caller already owns a transaction, else open one.

    An owned unit of work commits when the block finishes and rolls back when
    it raises; a borrowed one is left for its owner to commit.
    """

    if uow is not None:
        yield uow
        return
    with factory() as owned:
        yield owned
        owned.commit()
