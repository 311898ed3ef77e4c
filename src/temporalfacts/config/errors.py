"""Errors raised while loading settings."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A threshold, limit or environment value is out of range or malformed."""

