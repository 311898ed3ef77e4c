"""SQLAlchemy mapping metadata for the temporalfacts domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from temporalfacts.domain.model import (
    AliasKind,
    Entity,
    EntityAlias,
    EntityMention,
    EntityMergeRecord,
    EntityType,
    ExtractionMethod,
    Fact,
    FactSource,
    FactStatus,
    MentionRole,
    ResolutionStatus,
    SourceKind,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class UUIDTupleType(TypeDecorator[tuple[uuid.UUID, ...]]):
    """Ordered UUID references stored as a JSON array of strings."""

    impl = JSON
    cache_ok = True

    def process_bind_param(
        self, value: tuple[uuid.UUID, ...] | None, dialect: Dialect
    ) -> list[str]:
        _ = dialect
        return [str(item) for item in value or ()]

    def process_result_value(self, value: Any, dialect: Dialect) -> tuple[uuid.UUID, ...]:
        _ = dialect
        if not isinstance(value, list):
            return ()
        items = cast(list[Any], value)
        return tuple(uuid.UUID(str(item)) for item in items)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Entities ----------------------------------------------------------------------

entity_table = Table(
    "entity",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "canonical_id",
        UUIDColumnType,
        ForeignKey("entity.id", ondelete="SET NULL"),
        key="_canonical_id",
        nullable=True,
    ),
    Column("canonical_name", String, nullable=False),
    Column("name_key", String, nullable=False),
    Column("entity_type", Enum(EntityType, native_enum=False), nullable=False),
    Column(
        "resolution_status",
        Enum(ResolutionStatus, native_enum=False),
        nullable=False,
        default=ResolutionStatus.RESOLVED,
    ),
    Column("metadata", JSON, nullable=False, default=dict),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("version_id", Integer, nullable=False),
    Index("ix_entity_type_name", "entity_type", "name_key"),
)

entity_alias_table = Table(
    "entity_alias",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "entity_id",
        UUIDColumnType,
        ForeignKey("entity.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("text", String, nullable=False),
    Column("text_key", String, nullable=False),
    Column("kind", Enum(AliasKind, native_enum=False), nullable=True),
    Column("confidence", Float, nullable=False, default=1.0),
    Index("ix_entity_alias_text_key", "text_key"),
)

entity_merge_table = Table(
    "entity_merge",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("kept_id", UUIDColumnType, ForeignKey("entity.id"), nullable=False),
    Column("merged_id", UUIDColumnType, ForeignKey("entity.id"), nullable=False),
    Column("merged_name", String, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
)

# Facts -------------------------------------------------------------------------

fact_table = Table(
    "fact",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("text", Text, nullable=False),
    Column("digest", String(64), nullable=False),
    Column("valid_at", UTCDateTime(), nullable=False),
    Column("invalid_at", UTCDateTime(), nullable=True),
    Column("status", Enum(FactStatus, native_enum=False), nullable=False),
    Column(
        "superseded_by_id",
        UUIDColumnType,
        ForeignKey("fact.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("derived_from_ids", UUIDTupleType(), nullable=False, default=list),
    Column("corroborated_by_ids", UUIDTupleType(), nullable=False, default=list),
    Column("confidence", Float, nullable=False, default=1.0),
    Column("extraction_method", Enum(ExtractionMethod, native_enum=False), nullable=False),
    Column("metadata", JSON, nullable=False, default=dict),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("version_id", Integer, nullable=False),
    UniqueConstraint("digest", "valid_at", name="uq_fact_identity"),
    Index("ix_fact_validity", "valid_at", "invalid_at"),
    Index("ix_fact_status", "status"),
)

entity_mention_table = Table(
    "entity_mention",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("fact_id", UUIDColumnType, ForeignKey("fact.id", ondelete="CASCADE"), nullable=False),
    Column(
        "entity_id",
        UUIDColumnType,
        ForeignKey("entity.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("mention_text", String, nullable=False),
    Column("mention_role", Enum(MentionRole, native_enum=False), nullable=True),
    Column("confidence", Float, nullable=False, default=1.0),
    UniqueConstraint("fact_id", "entity_id", "mention_text", name="uq_entity_mention_identity"),
    Index("ix_entity_mention_entity", "entity_id"),
)

fact_source_table = Table(
    "fact_source",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("fact_id", UUIDColumnType, ForeignKey("fact.id", ondelete="CASCADE"), nullable=False),
    Column("source_id", String, nullable=False),
    Column("kind", Enum(SourceKind, native_enum=False), nullable=False),
    Column("excerpt", Text, nullable=True),
    Column("confidence", Float, nullable=False, default=1.0),
    UniqueConstraint("fact_id", "source_id", name="uq_fact_source_identity"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        EntityAlias,
        entity_alias_table,
    )

    mapper_registry.map_imperatively(
        Entity,
        entity_table,
        properties={
            "_aliases": relationship(
                EntityAlias,
                cascade="all, delete-orphan",
                lazy="selectin",
                order_by=entity_alias_table.c.text,
            ),
        },
        version_id_col=entity_table.c.version_id,
    )

    mapper_registry.map_imperatively(
        EntityMergeRecord,
        entity_merge_table,
    )

    mapper_registry.map_imperatively(
        EntityMention,
        entity_mention_table,
        properties={
            # orders mention inserts after the entity rows they point at
            "_entity": relationship(Entity),
        },
    )

    mapper_registry.map_imperatively(
        FactSource,
        fact_source_table,
    )

    mapper_registry.map_imperatively(
        Fact,
        fact_table,
        properties={
            "_mentions": relationship(
                EntityMention,
                cascade="all, delete-orphan",
                lazy="selectin",
                order_by=entity_mention_table.c.mention_text,
            ),
            "_sources": relationship(
                FactSource,
                cascade="all, delete-orphan",
                lazy="selectin",
                order_by=fact_source_table.c.source_id,
            ),
        },
        version_id_col=fact_table.c.version_id,
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
