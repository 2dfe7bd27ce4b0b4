# File: doccrawler/errors.py
"""doccrawler.errors: exception hierarchy of the crawl engine.

Per-URL failures derive from :class:`ExtractionError` and are absorbed by the
orchestrator; the rest reach the caller.
"""
from __future__ import annotations

from typing import Optional

__all__ = (
    "CrawlerError",
    "ExtractionError",
    "FetchError",
    "ContentError",
    "DetectionError",
    "BrowserLaunchError",
    "JobNotFoundError",
)


class CrawlerError(Exception):
    """Base class for errors raised on purpose by the crawl engine."""


class ExtractionError(CrawlerError):
    """A single URL could not be turned into content."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class FetchError(ExtractionError):
    """HTTP-level failure: non-200 status, network error, timeout, redirect loop."""

    def __init__(self, url: str, status: Optional[int] = None, reason: str = "") -> None:
        if status is not None:
            message = f"HTTP {status} at {url}"
        else:
            message = f"Network error at {url}: {reason or 'unknown'}"
        super().__init__(url, message)
        self.status = status
        self.reason = reason


class ContentError(ExtractionError):
    """Response body is empty or not a usable HTML document."""

    def __init__(self, url: str, reason: str = "malformed HTML") -> None:
        super().__init__(url, f"Unusable content at {url}: {reason}")


class DetectionError(CrawlerError):
    """Page type could not be determined because the page could not be fetched."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Page type detection failed for {url}: {reason}")
        self.url = url


class BrowserLaunchError(CrawlerError):
    """Headless browser failed to start; the next extraction retries the launch."""


class JobNotFoundError(CrawlerError, KeyError):
    """Unknown crawl job id."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id

    def __str__(self) -> str:
        return self.args[0]
