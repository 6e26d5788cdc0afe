"""
Error taxonomy for RepoBot.

Everything below the command dispatcher raises one of these; the dispatcher
(and the HTTP route that wraps it) is the only place that catches broadly.
"""
from __future__ import annotations

from typing import Optional


class RepoBotError(Exception):
    """Base class for all RepoBot errors."""


class InvalidSourceUrlError(RepoBotError, ValueError):
    """The ingestion URL is not a GitHub tree URL on an allowed branch."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid GitHub URL: {url!r}")
        self.url = url


class FetchError(RepoBotError):
    """A listing or content request failed (network error or non-2xx)."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"Fetch failed for {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


class IngestionError(RepoBotError):
    """Embedding or upsert failed for one document."""

    def __init__(self, source_path: str, cause: BaseException) -> None:
        super().__init__(f"Ingestion failed for {source_path}: {cause}")
        self.source_path = source_path
        self.cause = cause


class CrawlTimeoutError(RepoBotError, TimeoutError):
    """A whole ingestion run exceeded its time budget."""

    def __init__(self, source_url: str, timeout_seconds: float) -> None:
        super().__init__(f"Ingestion of {source_url} timed out after {timeout_seconds:.0f}s")
        self.source_url = source_url
        self.timeout_seconds = timeout_seconds
