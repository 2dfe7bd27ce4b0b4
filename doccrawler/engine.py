# File: doccrawler/engine.py
"""doccrawler.engine: wires the crawl components together for the CLI and tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from doccrawler.config import CrawlConfig, load_config
from doccrawler.crawler.crawler import CrawlOrchestrator
from doccrawler.crawler.detector import SpaDetector
from doccrawler.crawler.fetcher import Fetcher
from doccrawler.crawler.frontier import UrlFrontier
from doccrawler.crawler.link_extractor import LinkExtractor
from doccrawler.crawler.rate_limiter import TokenBucketRateLimiter
from doccrawler.crawler.rendered_extractor import RenderedExtractor
from doccrawler.crawler.robots import RobotsPolicy
from doccrawler.crawler.static_extractor import StaticExtractor
from doccrawler.crawler.strategy import ExtractionStrategySelector
from doccrawler.documents import Document, DocumentSink, InMemoryDocumentSink
from doccrawler.errors import JobNotFoundError
from doccrawler.jobs import InMemoryJobManager, Job, JobCreateData, JobManager
from doccrawler.logger import logger

__all__ = ["CrawlResult", "Engine", "run_crawl"]


@dataclass(slots=True)
class CrawlResult:
    """Final job record plus the documents stored for it."""

    job: Job
    documents: List[Document] = field(default_factory=list)

    def to_dict(self, include_content: bool = True) -> Dict[str, Any]:
        return {
            "job": self.job.to_dict(),
            "documents": [d.to_dict(include_content=include_content) for d in self.documents],
        }


class Engine:
    """Facade for the CLI and tests: builds collaborators, runs a crawl, releases resources."""

    @staticmethod
    def load_config(path: Optional[str]) -> CrawlConfig:
        return load_config(path)

    def __init__(
        self,
        config: CrawlConfig,
        job_manager: Optional[JobManager] = None,
        document_sink: Optional[DocumentSink] = None,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        rendered_extractor: Optional[RenderedExtractor] = None,
    ) -> None:
        self.config = config
        self.job_manager: JobManager = job_manager or InMemoryJobManager()
        self.document_sink: DocumentSink = document_sink or InMemoryDocumentSink()
        self.rate_limiter = rate_limiter or TokenBucketRateLimiter(
            default_rate_limit_ms=config.rate_limit, max_tokens=config.concurrency
        )
        self.fetcher = Fetcher(
            user_agent=config.user_agent,
            timeout_ms=config.timeout,
            max_redirects=config.max_redirects,
        )
        self.static_extractor = StaticExtractor(self.fetcher)
        self.rendered_extractor = rendered_extractor or RenderedExtractor()
        self.link_extractor = LinkExtractor()

    async def __aenter__(self) -> Engine:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def build_selector(self) -> ExtractionStrategySelector:
        """Strategy selector with its own detector cache around the shared extractors."""
        detector = SpaDetector(
            self.fetcher,
            self.config.detector,
            dynamic_probe=self.rendered_extractor.render_html,
        )
        return ExtractionStrategySelector(
            detector,
            self.static_extractor,
            self.rendered_extractor,
            force_strategy=self.config.force_strategy,
        )

    def build_crawler(self) -> CrawlOrchestrator:
        """A fresh orchestrator with its own frontier, robots state and detector cache."""
        return CrawlOrchestrator(
            frontier=UrlFrontier(),
            rate_limiter=self.rate_limiter,
            robots=RobotsPolicy(self.fetcher),
            selector=self.build_selector(),
            link_extractor=self.link_extractor,
            job_manager=self.job_manager,
            document_sink=self.document_sink,
            config=self.config,
        )

    async def run(self, start_url: Optional[str] = None) -> CrawlResult:
        url = start_url or self.config.start_url
        job = await self.job_manager.create_job(JobCreateData(url=url))
        crawler = self.build_crawler()
        await crawler.crawl(job.id, url)

        final = await self.job_manager.find_job_by_id(job.id)
        if final is None:
            raise JobNotFoundError(job.id)
        documents_for_job = getattr(self.document_sink, "documents_for_job", None)
        documents = documents_for_job(job.id) if documents_for_job else []
        return CrawlResult(job=final, documents=documents)

    async def close(self) -> None:
        await self.static_extractor.cleanup()
        await self.rendered_extractor.cleanup()
        await self.fetcher.close()

    def start_scan(self, timeout: Optional[float] = None) -> CrawlResult:
        """Blocking wrapper around :meth:`run` with an optional overall timeout (seconds)."""
        logger.info("Starting crawl of %s", self.config.start_url)

        async def _runner() -> CrawlResult:
            try:
                return await self.run()
            finally:
                await self.close()

        try:
            return asyncio.run(asyncio.wait_for(_runner(), timeout=timeout))
        except asyncio.TimeoutError:
            logger.error("Crawl did not finish within %s seconds", timeout)
            raise
        except Exception as exc:
            logger.error("Crawl failed: %s", exc)
            raise


async def run_crawl(config: CrawlConfig, start_url: Optional[str] = None) -> CrawlResult:
    """Run one crawl with in-memory collaborators and release every resource afterwards."""
    async with Engine(config) as engine:
        return await engine.run(start_url)
