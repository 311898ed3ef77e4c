"""Thresholds and worker limits for the knowledge engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import env_float, env_int, env_optional_float
from .errors import ConfigurationError

DEFAULT_FUZZY_MATCH_THRESHOLD: Final[float] = 0.85
DEFAULT_AUTO_MERGE_THRESHOLD: Final[float] = 0.95
DEFAULT_CORROBORATION_THRESHOLD: Final[int] = 2
DEFAULT_CONFLICT_MIN_SIMILARITY: Final[float] = 0.5
DEFAULT_CONFLICT_MAX_SIMILARITY: Final[float] = 0.95
DEFAULT_MAX_WORKERS: Final[int] = 4

ENV_PREFIX: Final[str] = "TEMPORALFACTS_"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    fuzzy_match_threshold: float = DEFAULT_FUZZY_MATCH_THRESHOLD
    auto_merge_threshold: float = DEFAULT_AUTO_MERGE_THRESHOLD
    corroboration_threshold: int = DEFAULT_CORROBORATION_THRESHOLD
    conflict_min_similarity: float = DEFAULT_CONFLICT_MIN_SIMILARITY
    conflict_max_similarity: float = DEFAULT_CONFLICT_MAX_SIMILARITY
    max_workers: int = DEFAULT_MAX_WORKERS
    item_timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        for name in (
            "fuzzy_match_threshold",
            "auto_merge_threshold",
            "conflict_min_similarity",
            "conflict_max_similarity",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must lie in [0, 1], got {value}")
        if self.auto_merge_threshold < self.fuzzy_match_threshold:
            raise ConfigurationError("auto_merge_threshold must not be below fuzzy_match_threshold")
        if self.conflict_min_similarity >= self.conflict_max_similarity:
            raise ConfigurationError(
                "conflict_min_similarity must be below conflict_max_similarity"
            )
        if self.corroboration_threshold < 1:
            raise ConfigurationError("corroboration_threshold must be positive")
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be positive")
        if self.item_timeout_seconds is not None and self.item_timeout_seconds <= 0:
            raise ConfigurationError("item_timeout_seconds must be positive when set")


def get_engine_config() -> EngineConfig:
    """Build the engine configuration from ``TEMPORALFACTS_*`` environment variables."""

    return EngineConfig(
        fuzzy_match_threshold=env_float(
            f"{ENV_PREFIX}FUZZY_MATCH_THRESHOLD", DEFAULT_FUZZY_MATCH_THRESHOLD
        ),
        auto_merge_threshold=env_float(
            f"{ENV_PREFIX}AUTO_MERGE_THRESHOLD", DEFAULT_AUTO_MERGE_THRESHOLD
        ),
        corroboration_threshold=env_int(
            f"{ENV_PREFIX}CORROBORATION_THRESHOLD", DEFAULT_CORROBORATION_THRESHOLD
        ),
        conflict_min_similarity=env_float(
            f"{ENV_PREFIX}CONFLICT_MIN_SIMILARITY", DEFAULT_CONFLICT_MIN_SIMILARITY
        ),
        conflict_max_similarity=env_float(
            f"{ENV_PREFIX}CONFLICT_MAX_SIMILARITY", DEFAULT_CONFLICT_MAX_SIMILARITY
        ),
        max_workers=env_int(f"{ENV_PREFIX}MAX_WORKERS", DEFAULT_MAX_WORKERS),
        item_timeout_seconds=env_optional_float(f"{ENV_PREFIX}ITEM_TIMEOUT_SECONDS"),
    )
