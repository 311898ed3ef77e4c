from __future__ import annotations

import pytest

from temporalfacts.config import ConfigurationError, EngineConfig, get_engine_config

ENV_NAMES = (
    "TEMPORALFACTS_FUZZY_MATCH_THRESHOLD",
    "TEMPORALFACTS_AUTO_MERGE_THRESHOLD",
    "TEMPORALFACTS_CORROBORATION_THRESHOLD",
    "TEMPORALFACTS_CONFLICT_MIN_SIMILARITY",
    "TEMPORALFACTS_CONFLICT_MAX_SIMILARITY",
    "TEMPORALFACTS_MAX_WORKERS",
    "TEMPORALFACTS_ITEM_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment() -> None:
    assert get_engine_config() == EngineConfig()


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEMPORALFACTS_FUZZY_MATCH_THRESHOLD", "0.8")
    monkeypatch.setenv("TEMPORALFACTS_CORROBORATION_THRESHOLD", "3")
    monkeypatch.setenv("TEMPORALFACTS_MAX_WORKERS", "8")
    monkeypatch.setenv("TEMPORALFACTS_ITEM_TIMEOUT_SECONDS", "1.5")
    monkeypatch.setenv("TEMPORALFACTS_AUTO_MERGE_THRESHOLD", "  ")

    config = get_engine_config()

    assert config.fuzzy_match_threshold == 0.8
    assert config.auto_merge_threshold == 0.95
    assert config.corroboration_threshold == 3
    assert config.max_workers == 8
    assert config.item_timeout_seconds == 1.5


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("TEMPORALFACTS_FUZZY_MATCH_THRESHOLD", "high"),
        ("TEMPORALFACTS_MAX_WORKERS", "2.5"),
        ("TEMPORALFACTS_MAX_WORKERS", "0"),
        ("TEMPORALFACTS_CONFLICT_MIN_SIMILARITY", "0.99"),
    ],
)
def test_bad_environment_values_raise(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError) as exc:
        get_engine_config()

    assert str(exc.value)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"fuzzy_match_threshold": 1.2},
        {"fuzzy_match_threshold": 0.9, "auto_merge_threshold": 0.8},
        {"conflict_min_similarity": 0.6, "conflict_max_similarity": 0.6},
        {"corroboration_threshold": 0},
        {"max_workers": 0},
        {"item_timeout_seconds": 0.0},
    ],
)
def test_inconsistent_config_is_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(ConfigurationError):
        EngineConfig(**kwargs)  # type: ignore[arg-type]
