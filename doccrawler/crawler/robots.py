# File: doccrawler/crawler/robots.py
"""
Robots policy of one crawl: loads robots.txt for the base host and answers
allow/deny and crawl-delay questions. Any failure to fetch means allow-all.
"""
from __future__ import annotations

from typing import Dict, List, Optional
from urllib.parse import urlparse

from doccrawler.crawler.fetcher import Fetcher
from doccrawler.errors import FetchError
from doccrawler.logger import get_logger
from doccrawler.parser.robots_parser import RobotsTxtRules
from doccrawler.parser.sitemap_parser import is_sitemap_index, parse_sitemap
from doccrawler.utils import get_root_url, is_same_domain, normalize_url

__all__ = ("RobotsPolicy",)

log = get_logger("robots")


class RobotsPolicy:
    """Per-crawl robots.txt state with a decision cache keyed by normalised URL."""

    def __init__(self, fetcher: Fetcher) -> None:
        self.fetcher = fetcher
        self.rules: Optional[RobotsTxtRules] = None
        self.base_url: Optional[str] = None
        self.user_agent: str = "*"
        self._decisions: Dict[str, bool] = {}

    @property
    def loaded(self) -> bool:
        return self.base_url is not None

    async def load(self, base_url: str, user_agent: str, retries: int = 2) -> None:
        """Fetch ``{origin}/robots.txt``; a failure or non-200 leaves everything allowed."""
        self.reset()
        self.base_url = base_url
        self.user_agent = user_agent
        robots_url = f"{get_root_url(base_url)}/robots.txt"
        try:
            result = await self.fetcher.get(robots_url, retries=retries)
        except FetchError as exc:
            log.warning("robots.txt unavailable at %s, allowing all: %s", robots_url, exc)
            return
        if result.status != 200:
            log.info("robots.txt %s -> HTTP %d, allowing all", robots_url, result.status)
            return
        self.rules = RobotsTxtRules(result.text)
        log.debug(
            "robots.txt loaded from %s: %d groups, %d sitemaps",
            robots_url, len(self.rules.groups), len(self.rules.sitemaps),
        )

    def is_allowed(self, url: str) -> bool:
        if self.rules is None:
            return True
        key = normalize_url(url)
        cached = self._decisions.get(key)
        if cached is not None:
            return cached
        parsed = urlparse(url)
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"
        allowed = self.rules.can_fetch(self.user_agent, path)
        self._decisions[key] = allowed
        if not allowed:
            log.debug("Disallowed by robots.txt: %s", url)
        return allowed

    def get_crawl_delay(self) -> Optional[int]:
        """Crawl-delay in milliseconds, or None."""
        if self.rules is None:
            return None
        delay = self.rules.crawl_delay(self.user_agent)
        return None if delay is None else int(delay * 1000)

    def get_sitemap_urls(self) -> List[str]:
        return [] if self.rules is None else list(self.rules.sitemaps)

    def reset(self) -> None:
        self.rules = None
        self.base_url = None
        self._decisions.clear()

    async def discover_sitemap_pages(self, limit: int = 1000) -> List[str]:
        """Page URLs listed by the sitemaps of the loaded host (one index level deep)."""
        if self.base_url is None:
            return []
        pages: List[str] = []
        pending = self.get_sitemap_urls()
        seen: set[str] = set()
        expanded_index = False
        while pending and len(pages) < limit:
            sitemap_url = pending.pop(0)
            if sitemap_url in seen:
                continue
            seen.add(sitemap_url)
            try:
                result = await self.fetcher.get(sitemap_url)
            except FetchError as exc:
                log.warning("Sitemap %s unavailable: %s", sitemap_url, exc)
                continue
            if result.status != 200:
                log.info("Sitemap %s -> HTTP %d", sitemap_url, result.status)
                continue
            locs = parse_sitemap(result.text)
            if is_sitemap_index(result.text):
                if not expanded_index:
                    pending.extend(locs)
                    expanded_index = True
                continue
            pages.extend(u for u in locs if is_same_domain(u, self.base_url))
        return pages[:limit]
