"""Public domain model surface."""

from __future__ import annotations

from temporalfacts.domain.model.audit import EntityMergeRecord
from temporalfacts.domain.model.entity import Entity, EntityAlias
from temporalfacts.domain.model.enums import (
    AliasKind,
    EntityType,
    ExtractionMethod,
    FactStatus,
    MatchKind,
    MentionRole,
    ResolutionStatus,
    SourceKind,
)
from temporalfacts.domain.model.fact import (
    ALLOWED_TRANSITIONS,
    EntityMention,
    Fact,
    FactSource,
    became_invalid_between,
    became_valid_between,
    currently_valid,
    valid_at_point,
    valid_between,
)
from temporalfacts.domain.model.primitives import (
    ComparableKey,
    as_utc,
    content_digest,
    lookup_key,
    normalize_text,
    utc_now,
)

__all__ = [  # noqa: RUF022
    # entities
    "Entity",
    "EntityAlias",
    "EntityMergeRecord",
    # facts
    "Fact",
    "EntityMention",
    "FactSource",
    "ALLOWED_TRANSITIONS",
    "valid_at_point",
    "currently_valid",
    "valid_between",
    "became_valid_between",
    "became_invalid_between",
    # enums
    "AliasKind",
    "EntityType",
    "ExtractionMethod",
    "FactStatus",
    "MatchKind",
    "MentionRole",
    "ResolutionStatus",
    "SourceKind",
    # primitives
    "ComparableKey",
    "as_utc",
    "content_digest",
    "lookup_key",
    "normalize_text",
    "utc_now",
]
