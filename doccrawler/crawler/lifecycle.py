# File: doccrawler/crawler/lifecycle.py
"""
Crawler state machine and the Job Manager calls that accompany each
transition. Composed into the orchestrator.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

from doccrawler.crawler.models import CrawlerState, ExtractionOptions
from doccrawler.errors import CrawlerError
from doccrawler.jobs import JobManager, JobStats
from doccrawler.logger import get_logger

__all__ = ("CrawlContext", "CrawlLifecycle", "InvalidTransition")

log = get_logger("crawler")

S = CrawlerState

_TRANSITIONS: Dict[CrawlerState, FrozenSet[CrawlerState]] = {
    S.IDLE: frozenset({S.INITIALIZING, S.RUNNING, S.ERROR}),
    S.INITIALIZING: frozenset({S.IDLE, S.ERROR}),
    S.RUNNING: frozenset({S.PAUSED, S.STOPPING, S.IDLE, S.ERROR}),
    S.PAUSED: frozenset({S.RUNNING, S.STOPPING, S.IDLE, S.ERROR}),
    S.STOPPING: frozenset({S.IDLE, S.ERROR}),
    S.ERROR: frozenset({S.INITIALIZING, S.IDLE}),
}


class InvalidTransition(CrawlerError):
    pass


@dataclass
class CrawlContext:
    """Everything one crawl run owns; passed explicitly through the loop."""

    job_id: str
    start_url: str
    options: ExtractionOptions
    stats: JobStats = field(default_factory=JobStats)
    stop_requested: asyncio.Event = field(default_factory=asyncio.Event)
    resumed: asyncio.Event = field(default_factory=asyncio.Event)
    halted: bool = False

    def __post_init__(self) -> None:
        self.resumed.set()


class CrawlLifecycle:
    """Owns the crawler state and forwards pause/resume/stop to the Job Manager."""

    def __init__(self, job_manager: JobManager) -> None:
        self.job_manager = job_manager
        self._state = CrawlerState.IDLE
        self.context: Optional[CrawlContext] = None

    @property
    def state(self) -> CrawlerState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state in (S.INITIALIZING, S.RUNNING, S.PAUSED, S.STOPPING)

    def transition(self, new_state: CrawlerState) -> None:
        if new_state is self._state:
            return
        if new_state not in _TRANSITIONS[self._state]:
            raise InvalidTransition(f"Cannot go from {self._state.value} to {new_state.value}")
        log.debug("State %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def begin(self, context: CrawlContext) -> None:
        if self.active:
            raise CrawlerError(f"Crawl already in progress (state {self._state.value})")
        self.context = context

    def end(self) -> None:
        self.context = None

    async def pause(self) -> None:
        ctx = self.context
        if self._state is not S.RUNNING or ctx is None:
            log.warning("Cannot pause crawler in state %s", self._state.value)
            return
        self.transition(S.PAUSED)
        ctx.resumed.clear()
        await self.job_manager.pause_job(ctx.job_id)
        log.info("Crawler paused")

    async def resume(self) -> None:
        ctx = self.context
        if self._state is not S.PAUSED or ctx is None:
            log.warning("Cannot resume crawler in state %s", self._state.value)
            return
        self.transition(S.RUNNING)
        await self.job_manager.resume_job(ctx.job_id)
        ctx.resumed.set()
        log.info("Crawler resumed")

    async def stop(self) -> None:
        """Terminal for the current run; a paused loop is woken so it can exit."""
        ctx = self.context
        if self._state not in (S.RUNNING, S.PAUSED) or ctx is None:
            log.warning("Cannot stop crawler in state %s", self._state.value)
            return
        self.transition(S.STOPPING)
        ctx.stop_requested.set()
        ctx.resumed.set()
        await self.job_manager.cancel_job(ctx.job_id)
        log.info("Crawler stopping")
