"""Exception hierarchy shared by clients, workers and the pipeline."""

from __future__ import annotations


class HarvestError(Exception):
    """Base class for every error raised by :mod:`avatar_etl`."""


class DirectoryError(HarvestError):
    """The chain directory could not be fetched or understood.

    This is the only failure that aborts a run.
    """


class FetchError(HarvestError):
    """A JSON GET failed: network error, HTTP error status or non-JSON body."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class DownloadError(HarvestError):
    """An image could not be streamed to disk."""
