# === FILE: doccrawler/crawler/crawler.py ===
"""
Crawl orchestrator: drives one crawl run over the frontier, robots policy,
rate limiter, strategy-selected extractors and link extractor, reporting
to the Job Manager and storing documents through the Document Sink.

Per-URL failures are counted and the crawl moves on; anything else marks
the job failed and propagates.
"""
from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Pattern

from doccrawler.config import CrawlConfig
from doccrawler.crawler.frontier import UrlFrontier
from doccrawler.crawler.lifecycle import CrawlContext, CrawlLifecycle
from doccrawler.crawler.link_extractor import LinkExtractor
from doccrawler.crawler.models import CrawlerState, ExtractionOptions, FrontierEntry
from doccrawler.crawler.rate_limiter import TokenBucketRateLimiter
from doccrawler.crawler.robots import RobotsPolicy
from doccrawler.crawler.strategy import ExtractionStrategySelector
from doccrawler.documents import DocumentCreateData, DocumentSink
from doccrawler.errors import BrowserLaunchError, CrawlerError, ExtractionError
from doccrawler.jobs import JobManager, JobStats
from doccrawler.logger import get_logger
from doccrawler.utils import extract_domain, is_valid_url

__all__ = ("CrawlOrchestrator",)

log = get_logger("crawler")


class CrawlOrchestrator:
    """Sequential crawl loop; one URL in flight per orchestrator."""

    def __init__(
        self,
        frontier: UrlFrontier,
        rate_limiter: TokenBucketRateLimiter,
        robots: Optional[RobotsPolicy],
        selector: ExtractionStrategySelector,
        link_extractor: LinkExtractor,
        job_manager: JobManager,
        document_sink: DocumentSink,
        config: CrawlConfig,
    ) -> None:
        self.frontier = frontier
        self.rate_limiter = rate_limiter
        self.robots = robots
        self.selector = selector
        self.link_extractor = link_extractor
        self.job_manager = job_manager
        self.document_sink = document_sink
        self.config = config
        self.lifecycle = CrawlLifecycle(job_manager)
        self._include: List[Pattern[str]] = [re.compile(p) for p in config.include_patterns]
        self._exclude: List[Pattern[str]] = [re.compile(p) for p in config.exclude_patterns]

    # ---- public API ------------------------------------------------------- #

    @property
    def state(self) -> CrawlerState:
        return self.lifecycle.state

    async def pause(self) -> None:
        await self.lifecycle.pause()

    async def resume(self) -> None:
        await self.lifecycle.resume()

    async def stop(self) -> None:
        await self.lifecycle.stop()

    def get_progress(self) -> Dict[str, float]:
        crawled = self.frontier.visited_count()
        pending = self.frontier.size()
        total = crawled + pending
        percentage = min(100.0, crawled / total * 100) if total else 0.0
        return {
            "total_urls": total,
            "crawled_urls": crawled,
            "pending_urls": pending,
            "percentage": percentage,
        }

    def default_options(self) -> ExtractionOptions:
        cfg = self.config
        return ExtractionOptions(
            user_agent=cfg.user_agent,
            timeout_ms=cfg.timeout,
            wait_for_selector=cfg.wait_for_selector,
            wait_for_timeout_ms=cfg.wait_for_timeout,
        )

    async def crawl(
        self,
        job_id: str,
        start_url: Optional[str] = None,
        options: Optional[ExtractionOptions] = None,
    ) -> JobStats:
        """Run one crawl to completion, halt, stop or failure and return its stats."""
        ctx = CrawlContext(
            job_id=job_id,
            start_url=start_url or self.config.start_url,
            options=options or self.default_options(),
        )
        self.lifecycle.begin(ctx)
        started = time.monotonic()
        log.info("Crawl %s started at %s", job_id, ctx.start_url)
        try:
            await self._initialize(ctx)
            self.lifecycle.transition(CrawlerState.RUNNING)
            await self._seed(ctx)
            await self._run_loop(ctx)

            if ctx.halted:
                await self.job_manager.update_progress(job_id, self._progress_fraction(), ctx.stats)
            else:
                await self.job_manager.mark_job_completed(job_id, ctx.stats)
        except Exception as exc:
            self.lifecycle.transition(CrawlerState.ERROR)
            log.exception("Crawl %s failed: %s", job_id, exc)
            try:
                await self.job_manager.mark_job_failed(job_id, str(exc) or type(exc).__name__, ctx.stats)
            except Exception as report_exc:  # noqa: BLE001
                log.error("Could not mark job %s failed: %s", job_id, report_exc)
            raise
        finally:
            if self.robots is not None:
                self.robots.reset()
            if self.lifecycle.state is not CrawlerState.ERROR:
                self.lifecycle.transition(CrawlerState.IDLE)
            self.lifecycle.end()

        duration = time.monotonic() - started
        log.info(
            "Crawl %s finished: %d documents, %d skipped, %d errors in %.2f s",
            job_id, ctx.stats.pages_processed, ctx.stats.pages_skipped, ctx.stats.error_count, duration,
        )
        return ctx.stats

    # ---- run phases ------------------------------------------------------- #

    async def _initialize(self, ctx: CrawlContext) -> None:
        self.lifecycle.transition(CrawlerState.INITIALIZING)
        if self.robots is not None and self.config.respect_robots_txt:
            await self.robots.load(ctx.start_url, self.config.user_agent, retries=self.config.robots_retries)
        self.selector.detector.reset()
        self.lifecycle.transition(CrawlerState.IDLE)

    async def _seed(self, ctx: CrawlContext) -> None:
        if not is_valid_url(ctx.start_url):
            raise CrawlerError(f"Invalid start URL: {ctx.start_url!r}")
        self.frontier.clear()
        self.frontier.add(ctx.start_url, 0)

        robots_active = self.robots is not None and self.config.respect_robots_txt
        if self.config.seed_from_sitemap and robots_active and self.config.max_depth >= 1:
            pages = await self.robots.discover_sitemap_pages()
            added = self.frontier.add_bulk((url, 1) for url in self._filter(pages))
            log.info("Seeded %d URLs from sitemaps", added)

        domain = extract_domain(ctx.start_url)
        rate = self.config.rate_limit
        delay = self.robots.get_crawl_delay() if robots_active else None
        if delay is not None and delay > rate:
            log.info("Using robots.txt crawl-delay of %d ms for %s", delay, domain)
            rate = delay
        self.rate_limiter.set_rate_limit(domain, rate)

    async def _run_loop(self, ctx: CrawlContext) -> None:
        running = (CrawlerState.RUNNING, CrawlerState.PAUSED)
        while self.lifecycle.state in running and self.frontier.size() > 0:
            if self.lifecycle.state is CrawlerState.PAUSED:
                log.debug("Waiting for resume")
                await ctx.resumed.wait()
            if ctx.stop_requested.is_set():
                log.info("Stop requested, leaving crawl loop")
                break
            if not await self.job_manager.should_continue(ctx.job_id):
                log.info("Job %s cancelled or paused", ctx.job_id)
                ctx.halted = True
                break

            entry = self.frontier.get_next()
            if entry is None:
                break
            if entry.depth > self.config.max_depth:
                self.frontier.mark_visited(entry.url)
                ctx.stats.pages_skipped += 1
                continue

            if self.config.reuse_cached_content and await self._reuse_document(ctx, entry):
                await self._report(ctx)
                continue

            domain = extract_domain(entry.url) or ""
            await self.rate_limiter.acquire_token(domain)
            try:
                await self._process(ctx, entry)
            finally:
                self.rate_limiter.release_token(domain)
            await self._report(ctx)

    async def _process(self, ctx: CrawlContext, entry: FrontierEntry) -> None:
        url, depth = entry.url, entry.depth
        if self.robots is not None and self.config.respect_robots_txt and not self.robots.is_allowed(url):
            log.info("URL %s disallowed by robots.txt", url)
            self.frontier.mark_visited(url)
            ctx.stats.pages_skipped += 1
            return

        try:
            extractor = await self.selector.get_extractor_for_url(url)
            content = await extractor.extract(url, ctx.options)
        except (ExtractionError, BrowserLaunchError) as exc:
            log.warning("Failed to extract %s: %s", url, exc)
            self.frontier.mark_visited(url)
            ctx.stats.record_error(str(exc))
            return

        self.frontier.mark_visited(url)
        final_url = content.url or url
        if final_url != url:
            content.metadata["final_url"] = final_url
        await self.document_sink.create_document(
            DocumentCreateData(
                url=url,
                title=content.title,
                content=content.raw_content,
                metadata=content.metadata,
                crawl_date=datetime.now(timezone.utc),
                level=depth,
                job_id=ctx.job_id,
            )
        )
        ctx.stats.pages_processed += 1
        log.debug("Stored %s (depth %d)", url, depth)

        if depth < self.config.max_depth:
            self._enqueue_links(ctx, content.raw_content, final_url, depth)

    async def _reuse_document(self, ctx: CrawlContext, entry: FrontierEntry) -> bool:
        existing = await self.document_sink.find_recent_document(entry.url, self.config.cache_expiry_days)
        if existing is None:
            return False
        await self.document_sink.copy_document(existing, ctx.job_id, entry.depth)
        self.frontier.mark_visited(entry.url)
        ctx.stats.pages_processed += 1
        log.info("Reused document %s for %s", existing.id, entry.url)
        if entry.depth < self.config.max_depth:
            page_url = existing.metadata.get("final_url") or entry.url
            self._enqueue_links(ctx, existing.content, page_url, entry.depth)
        return True

    # ---- helpers ---------------------------------------------------------- #

    def _enqueue_links(self, ctx: CrawlContext, html: str, url: str, depth: int) -> None:
        links = self.link_extractor.extract_links(html, ctx.start_url, url)
        added = self.frontier.add_bulk((link, depth + 1) for link in self._filter(links))
        log.debug("Found %d links on %s, %d new", len(links), url, added)

    def _filter(self, urls: Iterable[str]) -> List[str]:
        kept: List[str] = []
        for url in urls:
            if self._include and not any(p.search(url) for p in self._include):
                continue
            if any(p.search(url) for p in self._exclude):
                continue
            kept.append(url)
        return kept

    def _progress_fraction(self) -> float:
        return self.get_progress()["percentage"] / 100

    async def _report(self, ctx: CrawlContext) -> None:
        await self.job_manager.update_progress(ctx.job_id, self._progress_fraction(), ctx.stats)
