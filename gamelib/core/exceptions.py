"""
Exception hierarchy for the library sync engine.

Only fetch-level failures (UpstreamError raised by a source adapter's first
page) escape a sync. CatalogError and StoreError are absorbed by the matcher
and the reconciler respectively and show up as SyncResult counters.
"""
from typing import Optional

# Statuses worth retrying at the adapter layer
RETRYABLE_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})


class GameLibError(Exception):
    """Base class for all library sync errors."""


class UpstreamError(GameLibError):
    """
    A platform or catalog API call did not succeed.

    Attributes:
        status: HTTP status code, or None for timeouts/transport errors
        retryable: Whether repeating the same call may succeed
        source: Short name of the upstream ("steam", "igdb", ...)
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retryable: Optional[bool] = None,
        source: str = "upstream",
    ):
        super().__init__(message)
        self.status = status
        if retryable is None:
            retryable = status is None or status in RETRYABLE_STATUSES
        self.retryable = retryable
        self.source = source

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is not None:
            return f"{base} (source={self.source}, status={self.status})"
        return f"{base} (source={self.source})"


class CatalogError(UpstreamError):
    """The catalog service (IGDB) rejected or failed a lookup/search."""

    def __init__(self, message: str, status: Optional[int] = None, retryable: Optional[bool] = None):
        super().__init__(message, status=status, retryable=retryable, source="igdb")


class StoreError(GameLibError):
    """A read or write against the library store failed."""
