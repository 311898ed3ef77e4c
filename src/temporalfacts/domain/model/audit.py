"""Audit records for entity merge decisions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from temporalfacts.domain.model.primitives import new_id, utc_now


@dataclass(eq=False, kw_only=True)
class EntityMergeRecord:
    """Audit record for pointing a duplicate entity to its surviving counterpart."""

    id: UUID = field(default_factory=new_id)
    kept_id: UUID
    merged_id: UUID
    merged_name: str
    created_at: datetime = field(default_factory=utc_now)
