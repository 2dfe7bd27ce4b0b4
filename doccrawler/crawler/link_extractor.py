# doccrawler/crawler/link_extractor.py
"""
Same-domain link discovery for the crawl frontier.
"""
from __future__ import annotations

from typing import Iterable, List, Sequence

from bs4 import BeautifulSoup
from bs4.element import Tag

from doccrawler.logger import get_logger
from doccrawler.utils import extract_domain, is_excluded_resource, is_valid_url, normalize_url, resolve_url

__all__ = ("LinkExtractor", "PAGINATION_SELECTORS")

log = get_logger("links")

PAGINATION_SELECTORS: Sequence[str] = (
    ".pagination a",
    ".pager a",
    ".pages a",
    "nav.pagination a",
    ".page-numbers",
    '[aria-label*="page"]',
    '[aria-label*="Page"]',
    "[data-page]",
    ".page-item a",
)

_SKIP_PREFIXES = ("javascript:", "mailto:", "#")


class LinkExtractor:
    """Finds links that stay on the crawl's base domain."""

    def extract_links(self, html: str, base_url: str, current_url: str) -> List[str]:
        """
        Normalised, deduplicated same-domain links of every ``<a href>``.

        Relative hrefs resolve against *current_url*; the domain check is
        against *base_url*.
        """
        soup = BeautifulSoup(html, "html.parser")
        return self._collect(soup.find_all("a"), base_url, current_url)

    def extract_pagination_links(self, html: str, base_url: str, current_url: str) -> List[str]:
        """Links inside the first pagination container that yields any."""
        soup = BeautifulSoup(html, "html.parser")
        for selector in PAGINATION_SELECTORS:
            links = self._collect(soup.select(selector), base_url, current_url)
            if links:
                log.debug("Pagination selector %r matched %d links", selector, len(links))
                return links
        return []

    @staticmethod
    def _collect(tags: Iterable[object], base_url: str, current_url: str) -> List[str]:
        base_domain = extract_domain(base_url)
        links: List[str] = []
        for tag in tags:
            if not isinstance(tag, Tag):
                continue
            href = tag.get("href")
            if not isinstance(href, str):
                continue
            raw = href.strip()
            if not raw or raw.lower().startswith(_SKIP_PREFIXES):
                continue
            absolute = resolve_url(raw, current_url)
            if not is_valid_url(absolute) or is_excluded_resource(absolute):
                log.debug("Skipping link %r", raw)
                continue
            normalized = normalize_url(absolute)
            if extract_domain(normalized) == base_domain:
                links.append(normalized)
        return list(dict.fromkeys(links))
