"""String similarity shared by entity resolution and conflict detection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rapidfuzz.distance import Levenshtein

from temporalfacts.domain.model.primitives import normalize_text

if TYPE_CHECKING:
    from collections.abc import Iterable


def name_similarity(first: str, second: str) -> float:
    """Edit-distance ratio in [0, 1]: ``1 - levenshtein / max(len)`` on lower-cased names."""

    return Levenshtein.normalized_similarity(first.strip().lower(), second.strip().lower())


def text_similarity(first: str, second: str) -> float:
    """Same ratio as :func:`name_similarity`, over fully normalized fact text."""

    return Levenshtein.normalized_similarity(normalize_text(first), normalize_text(second))


def best_match[T](name: str, candidates: Iterable[tuple[T, str]]) -> tuple[T, float] | None:
    """Return the highest-scoring ``(item, score)`` across ``(item, text)`` pairs.

    Ties keep the first candidate seen.
    """

    best: tuple[T, float] | None = None
    for item, text in candidates:
        score = name_similarity(name, text)
        if best is None or score > best[1]:
            best = (item, score)
    return best
