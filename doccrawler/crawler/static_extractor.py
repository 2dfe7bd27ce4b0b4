# File: doccrawler/crawler/static_extractor.py
"""Plain-HTTP extractor for server-rendered pages."""
from __future__ import annotations

import time
from typing import Optional

from doccrawler.crawler.fetcher import Fetcher
from doccrawler.crawler.models import ExtractedContent, ExtractionOptions, PageType
from doccrawler.errors import FetchError
from doccrawler.logger import get_logger
from doccrawler.parser.html_parser import parse_html

__all__ = ("StaticExtractor",)

log = get_logger("static-extractor")


class StaticExtractor:
    """One GET per page, parsed with BeautifulSoup. Holds no resources of its own."""

    def __init__(self, fetcher: Fetcher) -> None:
        self.fetcher = fetcher

    async def extract(self, url: str, options: Optional[ExtractionOptions] = None) -> ExtractedContent:
        options = options or ExtractionOptions()
        started = time.monotonic()
        headers = {"User-Agent": options.user_agent} if options.user_agent != self.fetcher.user_agent else None
        try:
            result = await self.fetcher.get(url, headers=headers)
            if result.status != 200:
                raise FetchError(url, status=result.status)
            page = parse_html(result.text, result.url, with_links=options.extract_links)
        except FetchError as exc:
            log.error("Error extracting %s: %s", url, exc)
            raise

        page.metadata["rendered_with"] = "static"
        log.debug("Extracted %s in %.0f ms", url, (time.monotonic() - started) * 1000)
        return ExtractedContent(
            url=result.url,
            title=page.title,
            raw_content=result.text,
            plain_text=page.text,
            metadata=page.metadata,
            links=page.links,
        )

    def supports_page_type(self, page_type: PageType) -> bool:
        return page_type is PageType.STATIC

    async def cleanup(self) -> None:
        """Nothing to release; the shared fetcher is closed by its owner."""
