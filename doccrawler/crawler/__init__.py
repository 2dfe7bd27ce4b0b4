"""Crawl engine components: frontier, rate limiter, robots policy, detector, extractors, orchestrator."""

from doccrawler.crawler.crawler import CrawlOrchestrator
from doccrawler.crawler.models import CrawlerState, ExtractedContent, ExtractionOptions, PageType, PageTypeResult

__all__ = [
    "CrawlOrchestrator",
    "CrawlerState",
    "ExtractedContent",
    "ExtractionOptions",
    "PageType",
    "PageTypeResult",
]
