"""Temporal query engine: point-in-time queries, timelines and diffs."""

from __future__ import annotations

from temporalfacts.domain.temporal.diff import FactDiff, diff_snapshots
from temporalfacts.domain.temporal.engine import TemporalQueryEngine
from temporalfacts.domain.temporal.query import (
    ALL_STATUSES,
    CANONICAL_VIEW,
    FactQuery,
    execute_query,
    statuses_for,
)
from temporalfacts.domain.temporal.timeline import Timeline, TimelineTransition

__all__ = [
    "ALL_STATUSES",
    "CANONICAL_VIEW",
    "FactDiff",
    "FactQuery",
    "TemporalQueryEngine",
    "Timeline",
    "TimelineTransition",
    "diff_snapshots",
    "execute_query",
    "statuses_for",
]
