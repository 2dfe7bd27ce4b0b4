# File: doccrawler/crawler/strategy.py
"""Chooses the extractor for a URL: forced strategy, else the detector's verdict."""
from __future__ import annotations

from typing import Optional

from doccrawler.config import STRATEGY_ALIASES
from doccrawler.crawler.detector import SpaDetector
from doccrawler.crawler.models import ContentExtractor, PageType
from doccrawler.errors import DetectionError
from doccrawler.logger import get_logger

__all__ = ("ExtractionStrategySelector",)

log = get_logger("strategy")


class ExtractionStrategySelector:
    def __init__(
        self,
        detector: SpaDetector,
        static_extractor: ContentExtractor,
        rendered_extractor: ContentExtractor,
        force_strategy: Optional[str] = None,
    ) -> None:
        if force_strategy is not None and force_strategy.lower() not in STRATEGY_ALIASES:
            raise ValueError(f"unknown extraction strategy: {force_strategy!r}")
        self.detector = detector
        self.static_extractor = static_extractor
        self.rendered_extractor = rendered_extractor
        self.force_strategy = STRATEGY_ALIASES[force_strategy.lower()] if force_strategy else None

    async def get_extractor_for_url(self, url: str, html: Optional[str] = None) -> ContentExtractor:
        """Forced strategy wins; detection errors fall back to the static extractor."""
        if self.force_strategy == "static":
            return self.static_extractor
        if self.force_strategy == "rendered":
            return self.rendered_extractor

        try:
            result = await self.detector.detect_page_type(url, html)
        except DetectionError as exc:
            log.warning("%s; falling back to static extraction", exc)
            return self.static_extractor
        except Exception as exc:  # noqa: BLE001
            log.warning("Detection failed for %s (%s); falling back to static extraction", url, exc)
            return self.static_extractor
        return self.get_extractor_by_page_type(result.page_type)

    def get_extractor_by_page_type(self, page_type: PageType) -> ContentExtractor:
        if page_type is PageType.SPA:
            return self.rendered_extractor
        return self.static_extractor

    async def cleanup(self) -> None:
        await self.static_extractor.cleanup()
        await self.rendered_extractor.cleanup()
