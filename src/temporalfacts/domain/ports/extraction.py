"""Ports for source documents and fact extractors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from temporalfacts.domain.pipeline.extraction import DraftFact


@runtime_checkable
class SourceDocument(Protocol):
    """Captured content owned by the ingestion collaborator."""

    @property
    def id(self) -> str: ...

    @property
    def text(self) -> str: ...

    @property
    def captured_at(self) -> datetime: ...


@runtime_checkable
class FactExtractor(Protocol):
    """Turns a source document into draft facts (manual, LLM or rule based)."""

    def extract(self, source: SourceDocument) -> Iterable[DraftFact | Mapping[str, Any]]: ...
