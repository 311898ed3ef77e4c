"""Turn source documents into stored facts through a pluggable extractor."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as SchemaValidationError

from temporalfacts.domain.errors import ValidationError
from temporalfacts.domain.fact_store import MentionInput, SourceInput
from temporalfacts.domain.model import EntityType, ExtractionMethod, MentionRole, SourceKind
from temporalfacts.domain.model.primitives import as_optional_utc, as_utc
from temporalfacts.domain.ports.unit_of_work import transaction_scope

if TYPE_CHECKING:
    from collections.abc import Iterable

    from temporalfacts.domain.fact_store import FactStore
    from temporalfacts.domain.model import Fact
    from temporalfacts.domain.pipeline.coordinator import BatchCoordinator, BatchResult
    from temporalfacts.domain.ports.extraction import FactExtractor, SourceDocument
    from temporalfacts.domain.ports.unit_of_work import KnowledgeUnitOfWork, UnitOfWorkFactory

log = getLogger(__name__)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class DraftBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class DraftEntity(DraftBaseModel):
    name: str = Field(min_length=1)
    entity_type: EntityType = Field(default=EntityType.CONCEPT, alias="type")
    role: MentionRole | None = None
    aliases: list[str] = Field(default_factory=list[str])

    _normalize_role = field_validator("role", mode="before")(_blank_to_none)

    @field_validator("entity_type", mode="before")
    @classmethod
    def _lower_type(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


class DraftFact(DraftBaseModel):
    """Extractor output before it is resolved against the store.

    ``valid_at`` may be omitted; the source's capture time is used instead.
    """

    text: str = Field(min_length=1)
    valid_at: datetime | date | None = None
    invalid_at: datetime | date | None = None
    entities: list[DraftEntity] = Field(default_factory=list[DraftEntity])
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    extraction_method: ExtractionMethod = ExtractionMethod.LLM
    excerpt: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict[str, Any])

    _normalize_excerpt = field_validator("excerpt", mode="before")(_blank_to_none)

    @model_validator(mode="after")
    def _check_interval(self) -> DraftFact:
        if self.valid_at is not None and self.invalid_at is not None:
            if as_utc(self.invalid_at) <= as_utc(self.valid_at):
                raise ValueError("invalid_at must be after valid_at")
        return self

    def mention_inputs(self) -> list[MentionInput]:
        return [
            MentionInput(
                name=entity.name,
                entity_type=entity.entity_type,
                role=entity.role,
                aliases=tuple(entity.aliases),
            )
            for entity in self.entities
        ]


@dataclass(frozen=True, slots=True)
class ExtractionOutcome:
    source_id: str
    facts: tuple[Fact, ...]
    rejected: tuple[str, ...] = ()


class ExtractionPipeline:
    """Validate each source, extract drafts, and store them as facts.

    Every source is handled in one transaction; the stored facts link back
    to the source as primary evidence. Drafts failing schema validation are
    skipped and reported in :attr:`ExtractionOutcome.rejected`.
    """

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        store: FactStore,
        coordinator: BatchCoordinator,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._store = store
        self._coordinator = coordinator

    def process(
        self,
        sources: Iterable[SourceDocument],
        extractor: FactExtractor,
    ) -> list[BatchResult[ExtractionOutcome]]:
        return self._coordinator.process(
            sources, lambda source: self.extract_one(source, extractor)
        )

    def process_parallel(
        self,
        sources: Iterable[SourceDocument],
        extractor: FactExtractor,
    ) -> list[BatchResult[ExtractionOutcome]]:
        return self._coordinator.process_parallel(
            sources, lambda source: self.extract_one(source, extractor)
        )

    def extract_one(self, source: SourceDocument, extractor: FactExtractor) -> ExtractionOutcome:
        if not source.text or not source.text.strip():
            raise ValidationError(f"source {source.id} has no text")

        drafts: list[DraftFact] = []
        rejected: list[str] = []
        for raw in extractor.extract(source):
            try:
                drafts.append(
                    raw if isinstance(raw, DraftFact) else DraftFact.model_validate(raw)
                )
            except SchemaValidationError as exc:
                rejected.append(_summarize(exc))

        with transaction_scope(self._uow_factory) as scope:
            facts = tuple(self._store_draft(draft, source, scope) for draft in drafts)

        log.info(
            "Extracted %d facts from source %s (%d drafts rejected)",
            len(facts),
            source.id,
            len(rejected),
        )
        return ExtractionOutcome(source_id=source.id, facts=facts, rejected=tuple(rejected))

    def _store_draft(
        self, draft: DraftFact, source: SourceDocument, uow: KnowledgeUnitOfWork
    ) -> Fact:
        return self._store.create(
            draft.text,
            as_utc(draft.valid_at or source.captured_at),
            as_optional_utc(draft.invalid_at),
            mentions=draft.mention_inputs(),
            sources=[
                SourceInput(
                    source_id=source.id,
                    kind=SourceKind.PRIMARY,
                    excerpt=draft.excerpt,
                    confidence=draft.confidence,
                )
            ],
            confidence=draft.confidence,
            extraction_method=draft.extraction_method,
            metadata=draft.metadata,
            uow=uow,
        )


def _summarize(exc: SchemaValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'draft'}: {error['msg']}"
        for error in exc.errors()
    )
