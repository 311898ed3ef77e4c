"""Domain primitives: identifiers, instants and text normalization."""

from __future__ import annotations

import hashlib
import re
import unicodedata
from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from temporalfacts.domain.errors import ValidationError

type Confidence = float
type ComparableKey = str

_WHITESPACE = re.compile(r"\s+")


def new_id() -> UUID:
    return uuid4()


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def as_utc(value: date | datetime) -> datetime:
    """Coerce a date or datetime to a timezone-aware UTC instant.

    Plain dates become midnight UTC; naive datetimes are taken to be UTC.
    """

    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def as_optional_utc(value: date | datetime | None) -> datetime | None:
    return None if value is None else as_utc(value)


def normalize_text(text: str) -> str:
    """NFKC-normalize, collapse whitespace, trim and lower-case."""

    normalized = unicodedata.normalize("NFKC", text)
    return _WHITESPACE.sub(" ", normalized).strip().lower()


def lookup_key(text: str) -> ComparableKey:
    """Case-folded lookup key for entity names and aliases."""

    return text.strip().casefold()


def content_digest(text: str) -> str:
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()


def validate_confidence(value: float, *, field_name: str = "confidence") -> float:
    if not 0.0 <= value <= 1.0:
        raise ValidationError(f"{field_name} must lie in [0, 1], got {value}")
    return float(value)
