"""Port for the external topic search capability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID


@runtime_checkable
class FactSearch(Protocol):
    """Ranked lookup of fact ids for a free-text topic.

    The ranking formula belongs to the implementation; callers only rely on
    the returned ids being candidates for the topic.
    """

    def search(self, topic: str, limit: int | None = None) -> Sequence[UUID]: ...
