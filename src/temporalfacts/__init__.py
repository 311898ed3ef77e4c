"""Temporal knowledge engine: entities, time-bounded facts and their provenance."""
