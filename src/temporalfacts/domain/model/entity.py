"""Entities: real-world things facts are about, with aliases and a merge pointer.

Merging never deletes an entity. The absorbed entity keeps its row as a
tombstone whose ``canonical_id`` forwards to the surviving entity, so every
chain of pointers forms a forest rooted at non-merged entities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from temporalfacts.domain.errors import ConflictError, ValidationError
from temporalfacts.domain.model.enums import AliasKind, EntityType, ResolutionStatus
from temporalfacts.domain.model.primitives import (
    lookup_key,
    new_id,
    utc_now,
    validate_confidence,
)


@dataclass(eq=False, kw_only=True)
class EntityAlias:
    id: UUID = field(default_factory=new_id)
    entity_id: UUID | None = None
    text: str
    kind: AliasKind | None = None
    confidence: float = 1.0
    text_key: str = field(init=False)

    def __post_init__(self) -> None:
        self.text = self.text.strip()
        if not self.text:
            raise ValidationError("alias text must not be blank")
        self.text_key = lookup_key(self.text)
        self.confidence = validate_confidence(self.confidence)

    def matches(self, text: str) -> bool:
        return self.text_key == lookup_key(text)


@dataclass(eq=False, kw_only=True)
class Entity:
    id: UUID = field(default_factory=new_id)
    canonical_name: str
    entity_type: EntityType
    resolution_status: ResolutionStatus = ResolutionStatus.RESOLVED
    metadata: dict[str, Any] = field(default_factory=dict[str, Any])
    created_at: datetime = field(default_factory=utc_now)
    name_key: str = field(init=False)

    _canonical_id: UUID | None = field(default=None, init=False)
    _aliases: list[EntityAlias] = field(default_factory=list["EntityAlias"], repr=False)

    def __post_init__(self) -> None:
        self.canonical_name = self.canonical_name.strip()
        if not self.canonical_name:
            raise ValidationError("canonical_name must not be blank")
        self.name_key = lookup_key(self.canonical_name)

    @property
    def canonical_id(self) -> UUID | None:
        return self._canonical_id

    @property
    def is_merged(self) -> bool:
        return self.resolution_status is ResolutionStatus.MERGED

    @property
    def resolved_id(self) -> UUID:
        """Return the forwarding pointer if merged, else own id (one hop only)."""
        return self._canonical_id or self.id

    @property
    def aliases(self) -> tuple[EntityAlias, ...]:
        return tuple(self._aliases)

    @property
    def alias_texts(self) -> tuple[str, ...]:
        return tuple(alias.text for alias in self._aliases)

    def names(self) -> tuple[str, ...]:
        """Canonical name followed by every alias text."""
        return (self.canonical_name, *self.alias_texts)

    def has_name(self, text: str) -> bool:
        return self.name_key == lookup_key(text)

    def has_alias(self, text: str) -> bool:
        return any(alias.matches(text) for alias in self._aliases)

    def add_alias(
        self,
        text: str,
        *,
        kind: AliasKind | None = None,
        confidence: float = 1.0,
    ) -> EntityAlias | None:
        """Attach an alias unless it duplicates the name or an existing alias.

        Admissibility (pronouns, generic terms, ...) is the resolver's concern.
        """
        if self.has_name(text) or self.has_alias(text):
            return None
        alias = EntityAlias(entity_id=self.id, text=text, kind=kind, confidence=confidence)
        self._aliases.append(alias)
        return alias

    def take_aliases(self, donor: Entity) -> list[EntityAlias]:
        """Move the donor's aliases onto this entity, dropping duplicates."""
        moved: list[EntityAlias] = []
        for alias in list(donor._aliases):  # noqa: SLF001
            donor._aliases.remove(alias)  # noqa: SLF001
            if self.has_name(alias.text) or self.has_alias(alias.text):
                continue
            alias.entity_id = self.id
            self._aliases.append(alias)
            moved.append(alias)
        return moved

    def point_to_canonical(self, canonical: Entity) -> None:
        """Mark this entity as merged into ``canonical``."""
        if canonical is self or canonical.id == self.id:
            raise ConflictError("cannot merge an entity into itself")
        if self.is_merged:
            raise ConflictError(f"entity {self.id} is already merged into {self._canonical_id}")
        self._canonical_id = canonical.id
        self.resolution_status = ResolutionStatus.MERGED

    def mark_split(self) -> None:
        if self.is_merged:
            raise ConflictError(f"entity {self.id} is merged and cannot be split")
        self.resolution_status = ResolutionStatus.SPLIT

