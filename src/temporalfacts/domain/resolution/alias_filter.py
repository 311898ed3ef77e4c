"""Admissibility rules for entity aliases.

Extracted text routinely yields pronouns, generic nouns ("the king") and lone
first names as candidate aliases. Attaching those to an entity would make
unrelated mentions resolve to it, so they are rejected here.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

PRONOUNS: Final[frozenset[str]] = frozenset(
    """
    i me my mine myself
    you your yours yourself yourselves
    he him his himself
    she her hers herself
    it its itself
    we us our ours ourselves
    they them their theirs themselves
    who whom whose
    this that these those
    what which
    one ones
    all any both each either neither none some
    another other others
    """.split()
)

GENERIC_TERMS: Final[frozenset[str]] = frozenset(
    """
    a an the
    man woman person people men women
    boy girl child children
    husband wife brother sister father mother son daughter
    king queen prince princess lord lady
    sir madam mr mrs ms miss dr
    someone something somewhere anyone anything anywhere
    everyone everything everywhere nobody nothing nowhere
    here there
    today yesterday tomorrow
    now then
    """.split()
)

GENERIC_ROLES: Final[frozenset[str]] = frozenset(
    {
        "the man",
        "the woman",
        "the person",
        "the people",
        "a man",
        "a woman",
        "a person",
        "this man",
        "this woman",
        "this person",
        "that man",
        "that woman",
        "that person",
        "the king",
        "the queen",
        "the lord",
        "the lady",
        "the brother",
        "the sister",
        "the father",
        "the mother",
        "the husband",
        "the wife",
        "the boy",
        "the girl",
        "the child",
        "believers",
        "disciples",
        "apostles",
        "men",
        "greek men",
    }
)

AMBIGUOUS_FIRST_NAMES: Final[frozenset[str]] = frozenset(
    """
    simon peter john james paul mark matthew luke andrew philip
    thomas joseph mary martha elizabeth sarah anna david
    michael robert william richard henry george charles edward
    ann jane margaret catherine alice
    """.split()
)

FILLER_WORDS: Final[frozenset[str]] = frozenset(
    {"a", "an", "the", "this", "that", "these", "those", "of", "and", "or"}
)

MIN_ALIAS_LENGTH: Final[int] = 2

_WHITESPACE = re.compile(r"\s+")


def _normalize(text: str | None) -> str:
    if text is None:
        return ""
    return _WHITESPACE.sub(" ", text.strip()).lower()


def _only_fillers(normalized: str) -> bool:
    words = normalized.split(" ")
    remaining = [w for w in words if w not in FILLER_WORDS and w not in GENERIC_TERMS]
    return all(w in PRONOUNS for w in remaining)


def _ambiguous_first_name(normalized: str, canonical: str) -> bool:
    if " " in normalized or normalized not in AMBIGUOUS_FIRST_NAMES:
        return False
    if not canonical:
        return True
    return canonical.split(" ")[0] != normalized


def rejection_reason(text: str | None, canonical_name: str | None = None) -> str | None:
    """Return why ``text`` is not an admissible alias, or ``None`` if it is."""

    normalized = _normalize(text)
    canonical = _normalize(canonical_name)

    if not normalized:
        return "empty"
    if len(normalized) < MIN_ALIAS_LENGTH:
        return f"too short (less than {MIN_ALIAS_LENGTH} characters)"
    if normalized in PRONOUNS:
        return "is a pronoun"
    if normalized in GENERIC_TERMS:
        return "is a generic term"
    if normalized in GENERIC_ROLES:
        return "is a generic role reference"
    if canonical and normalized == canonical:
        return "matches the canonical name"
    if _only_fillers(normalized):
        return "contains only articles and generic words"
    if _ambiguous_first_name(normalized, canonical):
        return "is an ambiguous standalone first name"
    return None


def is_valid_alias(text: str | None, canonical_name: str | None = None) -> bool:
    return rejection_reason(text, canonical_name) is None


def filter_aliases(aliases: Iterable[str], canonical_name: str | None = None) -> list[str]:
    """Keep admissible aliases, stripped and de-duplicated case-insensitively."""

    seen: set[str] = set()
    kept: list[str] = []
    for alias in aliases:
        stripped = alias.strip()
        key = stripped.lower()
        if key in seen or not is_valid_alias(stripped, canonical_name):
            continue
        seen.add(key)
        kept.append(stripped)
    return kept
