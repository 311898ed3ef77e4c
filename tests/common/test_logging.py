from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from temporalfacts.common.logging import configure_logging

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_accepts_level_names() -> None:
    configure_logging(level="debug", force=True)

    assert logging.getLogger().level == logging.DEBUG


def test_configure_logging_accepts_numeric_levels() -> None:
    configure_logging(level=logging.WARNING, force=True)

    assert logging.getLogger().level == logging.WARNING


def test_configure_logging_rejects_unknown_level() -> None:
    with pytest.raises(ValueError, match="Unknown log level"):
        configure_logging(level="chatty", force=True)
