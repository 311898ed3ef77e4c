"""SQLAlchemy-backed units of work for the knowledge store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from temporalfacts.adapters.sqlalchemy.mappings import create_all_tables, start_mappers
from temporalfacts.adapters.sqlalchemy.repositories import (
    SqlAlchemyEntityRepository,
    SqlAlchemyFactRepository,
    SqlAlchemyKeywordSearch,
)
from temporalfacts.config.storage import get_database_uri
from temporalfacts.domain.errors import ConflictError
from temporalfacts.domain.ports.unit_of_work import KnowledgeRepositories, RepositoryCollection

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """The knowledge store was used before `startup` or configured twice."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "Knowledge store not started. Call startup() or FactEngine.open() "
                "before opening a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


# pysqlite opens transactions lazily and never for SAVEPOINT; take over BEGIN so
# nested transactions work and writers serialise on the database lock.
def _on_sqlite_connect(dbapi_connection: Any, connection_record: Any) -> None:
    _ = connection_record
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _on_sqlite_begin(conn: Connection) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def _prepare_sqlite(engine: Engine) -> None:
    if engine.dialect.name != "sqlite":
        return
    if not event.contains(engine, "connect", _on_sqlite_connect):
        event.listen(engine, "connect", _on_sqlite_connect)
    if not event.contains(engine, "begin", _on_sqlite_begin):
        event.listen(engine, "begin", _on_sqlite_begin)


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Initialise the SQLAlchemy engine, mappers, schema, and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "Knowledge store already started; pass force=True to switch engines."
        )

    resolved_engine = engine or create_engine(database_uri or get_database_uri(), future=True)
    _prepare_sqlite(resolved_engine)
    start_mappers()
    create_all_tables(resolved_engine)

    _STATE.engine = resolved_engine
    log.info("Knowledge store ready at %s", resolved_engine.url.render_as_string())
    return resolved_engine


def configured_engine() -> Engine | None:
    """Engine backing the knowledge store, or ``None`` before startup."""

    return _STATE.engine


def is_started() -> bool:
    """Whether `startup` has run since the last `shutdown`."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the store engine and forget it; the next unit of work needs a new startup."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections.

    Lost optimistic-concurrency races (``StaleDataError``) and constraint
    violations at commit surface as :class:`ConflictError`.
    """

    def __init__(self) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        if isinstance(exc_value, StaleDataError):
            raise ConflictError(f"concurrent modification detected: {exc_value}") from exc_value
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except (StaleDataError, IntegrityError) as exc:
            self.session.rollback()
            raise ConflictError(f"commit rejected: {exc}") from exc

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work is not open; use it as a context manager")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not open; use it as a context manager")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work is already open")
        self._session = session


class SqlAlchemyUnitOfWork(BaseSqlAlchemyUnitOfWork[KnowledgeRepositories]):
    """Unit of work managing one session for entities, facts and search."""

    def _build_repositories(self, session: Session) -> KnowledgeRepositories:
        return KnowledgeRepositories(
            entities=SqlAlchemyEntityRepository(session),
            facts=SqlAlchemyFactRepository(session),
            search=SqlAlchemyKeywordSearch(session),
        )


if TYPE_CHECKING:
    from temporalfacts.domain.ports.unit_of_work import KnowledgeUnitOfWork

    _uow_check: KnowledgeUnitOfWork = SqlAlchemyUnitOfWork()
