"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityType(StrEnum):
    PERSON = "person"
    ORGANIZATION = "organization"
    PLACE = "place"
    PRODUCT = "product"
    EVENT = "event"
    CONCEPT = "concept"


class ResolutionStatus(StrEnum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    MERGED = "merged"
    SPLIT = "split"


class AliasKind(StrEnum):
    NAME = "name"
    NICKNAME = "nickname"
    EMAIL = "email"
    HANDLE = "handle"
    ABBREVIATION = "abbreviation"
    TITLE = "title"


class FactStatus(StrEnum):
    CANONICAL = "canonical"
    SUPERSEDED = "superseded"
    CORROBORATED = "corroborated"
    SYNTHESIZED = "synthesized"


class ExtractionMethod(StrEnum):
    MANUAL = "manual"
    LLM = "llm"
    RULE_BASED = "rule_based"
    SYNTHESIZED = "synthesized"


class MentionRole(StrEnum):
    SUBJECT = "subject"
    OBJECT = "object"
    LOCATION = "location"
    TEMPORAL = "temporal"
    INSTRUMENT = "instrument"
    BENEFICIARY = "beneficiary"


class SourceKind(StrEnum):
    PRIMARY = "primary"
    SUPPORTING = "supporting"
    CORROBORATING = "corroborating"


class MatchKind(StrEnum):
    """Which resolution tier produced an entity match."""

    EXACT_NAME = "exact_name"
    EXACT_ALIAS = "exact_alias"
    FUZZY = "fuzzy"
