# doccrawler/crawler/fetcher.py
"""
Fetcher module: one shared aiohttp session with headers, timeout,
bounded redirects and optional retry/backoff.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout, TooManyRedirects

from doccrawler.errors import FetchError
from doccrawler.logger import get_logger

__all__ = ("FetchResult", "Fetcher")

log = get_logger("fetcher")

DEFAULT_ACCEPT = "text/html,application/xhtml+xml"
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9"


@dataclass(slots=True)
class FetchResult:
    """Final URL, status and decoded body of one GET."""

    url: str
    status: int
    text: str
    content_type: str = ""

    @property
    def ok(self) -> bool:
        return self.status == 200


class Fetcher:
    """Handles HTTP fetching with headers, timeout, redirect limit and retries/backoff."""

    _RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)

    def __init__(
        self,
        user_agent: str = "DocCrawler/1.0",
        timeout_ms: int = 30000,
        max_redirects: int = 5,
        backoff_cap: float = 60.0,
        session: Optional[ClientSession] = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self.max_redirects = max_redirects
        self.backoff_cap = backoff_cap
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> Fetcher:
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(
                timeout=ClientTimeout(total=self.timeout_ms / 1000),
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": DEFAULT_ACCEPT,
                    "Accept-Language": DEFAULT_ACCEPT_LANGUAGE,
                },
                raise_for_status=False,
            )
            self._owns_session = True
        return self._session

    async def get(self, url: str, retries: int = 0, headers: Optional[dict[str, str]] = None) -> FetchResult:
        """
        GET *url* and return the response whatever its status.

        429/5xx responses and network errors are retried *retries* times with
        exponential backoff. Once attempts run out a retryable status is
        returned as-is, a network error becomes :class:`FetchError`.
        """
        session = self._ensure_session()
        attempts = 0
        while True:
            try:
                async with session.get(
                    url,
                    headers=headers,
                    allow_redirects=self.max_redirects > 0,
                    max_redirects=max(self.max_redirects, 1),
                ) as resp:
                    ctype = resp.headers.get("Content-Type", "").lower()
                    text = await resp.text(errors="replace")
                    result = FetchResult(str(resp.url), resp.status, text, ctype)
                if resp.status not in self._RETRY_STATUS or attempts >= retries:
                    return result
                log.debug("Retryable status %d for %s", resp.status, url)
            except TooManyRedirects as exc:
                raise FetchError(url, reason=f"more than {self.max_redirects} redirects") from exc
            except (ClientError, asyncio.TimeoutError) as exc:
                if attempts >= retries:
                    raise FetchError(url, reason=str(exc) or type(exc).__name__) from exc
                log.debug("Retry %d/%d for %s after %s", attempts + 1, retries, url, exc)
            attempts += 1
            # exponential backoff, capped
            await asyncio.sleep(min(2 ** (attempts - 1) * 0.5, self.backoff_cap))

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
