"""Domain error hierarchy."""

from __future__ import annotations


class TemporalFactsError(Exception):
    """Base class for all domain errors."""


class ValidationError(TemporalFactsError, ValueError):
    """Raised for malformed input: bad intervals, confidences, self references."""


class NotFoundError(TemporalFactsError, LookupError):
    """Raised when a referenced entity or fact does not exist."""


class ConflictError(TemporalFactsError):
    """Raised when an operation clashes with the current state of the store."""


class DataIntegrityError(ConflictError):
    """Raised when stored state violates a structural invariant (e.g. a merge cycle)."""
