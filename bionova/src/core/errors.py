"""
BioNova-X - Exception Hierarchy
================================
``ProviderError`` is the only error that crosses from the core into the
HTTP layer (mapped to 500).  ``CacheError`` never leaves the cache store:
reads degrade to a miss and writes are logged and dropped.
"""

from __future__ import annotations


class BioNovaError(Exception):
    """Base class for every error raised by BioNova-X."""


class ProviderError(BioNovaError):
    """
    The Gemini call failed.

    Covers network, quota/auth, unparseable JSON and schema violations.
    Never retried automatically.
    """

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class CacheError(BioNovaError):
    """A read or write against the search cache failed."""
