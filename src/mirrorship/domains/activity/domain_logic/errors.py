"""Error taxonomy for activity aggregation and provider ingestion."""

from __future__ import annotations


class ActivityError(Exception):
    """Base class for activity aggregation errors."""


class InvalidRangeError(ActivityError, ValueError):
    """Raised when a date range has its start after its end."""


class SourceConfigError(ActivityError):
    """Raised when the source configuration file is malformed."""


class SourceUnavailableError(ActivityError):
    """A source's activity could not be obtained (provider down, not linked, ...).

    Callers assembling a dashboard recover from this by substituting an
    unavailable summary for the source.
    """

    def __init__(self, source_id: str, reason: str) -> None:
        super().__init__(f"{source_id}: {reason}")
        self.source_id = source_id
        self.reason = reason


class ProviderPayloadError(ActivityError):
    """A provider returned a payload that does not match its expected shape."""

    def __init__(self, source_id: str, reason: str) -> None:
        super().__init__(f"{source_id} payload: {reason}")
        self.source_id = source_id
        self.reason = reason
