"""Error taxonomy for a sync run.

Errors scoped to one principal (SessionError, ListingError) or one record
(DetailFetchError) are logged and swallowed by the worker that hit them.
DiscoveryError and LoadSubmissionError end the run.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for every failure raised by the sync pipeline."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status={self.status_code})"


class DiscoveryError(SyncError):
    """The principal report could not be run or decoded."""


class SessionError(SyncError):
    """Login or impersonation against the source system failed."""


class ListingError(SyncError):
    """Listing a principal's conversations failed."""


class DetailFetchError(SyncError):
    """Fetching the detail of a single conversation failed."""


class LoadSubmissionError(SyncError):
    """The warehouse rejected (or never received) the load job."""


class TokenError(LoadSubmissionError):
    """No warehouse bearer token could be obtained."""


class RunInProgressError(SyncError):
    """A single-flight sync was asked to start while another is running."""
