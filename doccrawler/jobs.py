# File: doccrawler/jobs.py
"""doccrawler.jobs: crawl job records and the Job Manager collaborator.

The orchestrator reports progress (a fraction in ``[0, 1]``) and final stats
through :class:`JobManager`; the job's owner changes its status from outside
(cancel, pause, resume) and the orchestrator observes that through
:meth:`JobManager.should_continue`. :class:`InMemoryJobManager` is the
reference implementation used by the CLI and the tests.
"""
from __future__ import annotations

import copy
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from doccrawler.errors import JobNotFoundError
from doccrawler.logger import get_logger

__all__ = (
    "JobStatus",
    "JobStats",
    "Job",
    "JobCreateData",
    "JobManager",
    "InMemoryJobManager",
)

log = get_logger("jobs")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PAUSED = "paused"


ACTIVE_STATUSES = frozenset({JobStatus.PENDING, JobStatus.RUNNING})


@dataclass(slots=True)
class JobStats:
    pages_processed: int = 0
    pages_skipped: int = 0
    total_chunks: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def record_error(self, message: str) -> None:
        self.errors.append(message)

    def error_summary(self) -> Optional[str]:
        """``"<n> errors during crawling. Latest: <message>"`` or None without errors."""
        if not self.errors:
            return None
        return f"{self.error_count} errors during crawling. Latest: {self.errors[-1]}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["error_count"] = self.error_count
        return data


@dataclass(slots=True)
class JobCreateData:
    url: str
    status: JobStatus = JobStatus.PENDING
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Job:
    url: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.PENDING
    progress: float = 0.0
    stats: JobStats = field(default_factory=JobStats)
    error: Optional[str] = None
    start_date: datetime = field(default_factory=_utcnow)
    end_date: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "status": self.status.value,
            "progress": self.progress,
            "stats": self.stats.to_dict(),
            "error": self.error,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "metadata": self.metadata,
        }


@runtime_checkable
class JobManager(Protocol):
    async def create_job(self, data: JobCreateData) -> Job: ...

    async def update_progress(self, job_id: str, progress: float, stats: JobStats) -> None: ...

    async def mark_job_completed(self, job_id: str, stats: JobStats) -> None: ...

    async def mark_job_failed(self, job_id: str, error: str, stats: JobStats) -> None: ...

    async def should_continue(self, job_id: str) -> bool: ...

    async def cancel_job(self, job_id: str) -> None: ...

    async def pause_job(self, job_id: str) -> None: ...

    async def resume_job(self, job_id: str) -> None: ...

    async def find_job_by_id(self, job_id: str) -> Optional[Job]: ...


class InMemoryJobManager:
    """Process-local job store."""

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}

    def _get(self, job_id: str) -> Job:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobNotFoundError(job_id) from None

    async def create_job(self, data: JobCreateData) -> Job:
        job = Job(url=data.url, status=data.status, metadata=dict(data.metadata))
        self._jobs[job.id] = job
        log.info("Created job %s for %s", job.id, job.url)
        return job

    async def update_progress(self, job_id: str, progress: float, stats: JobStats) -> None:
        job = self._get(job_id)
        job.progress = min(1.0, max(0.0, progress))
        job.stats = copy.deepcopy(stats)
        if job.status is JobStatus.PENDING:
            job.status = JobStatus.RUNNING
        summary = stats.error_summary()
        if summary:
            job.error = summary
        log.debug("Job %s progress %.0f%%", job_id, job.progress * 100)

    async def mark_job_completed(self, job_id: str, stats: JobStats) -> None:
        job = self._get(job_id)
        job.status = JobStatus.COMPLETED
        job.progress = 1.0
        job.end_date = _utcnow()
        job.stats = copy.deepcopy(stats)
        job.error = stats.error_summary()
        if job.error:
            log.info("Job %s completed with errors: %s", job_id, job.error)
        else:
            log.info("Job %s completed", job_id)

    async def mark_job_failed(self, job_id: str, error: str, stats: JobStats) -> None:
        job = self._get(job_id)
        job.status = JobStatus.FAILED
        job.end_date = _utcnow()
        job.error = error
        job.stats = copy.deepcopy(stats)
        log.warning("Job %s failed: %s", job_id, error)

    async def should_continue(self, job_id: str) -> bool:
        job = self._jobs.get(job_id)
        if job is None:
            log.warning("Job %s not found, stopping", job_id)
            return False
        if job.status not in ACTIVE_STATUSES:
            log.info("Job %s should stop: status is %s", job_id, job.status.value)
            return False
        return True

    async def cancel_job(self, job_id: str) -> None:
        job = self._get(job_id)
        job.status = JobStatus.CANCELLED
        job.end_date = _utcnow()
        log.info("Cancelled job %s", job_id)

    async def pause_job(self, job_id: str) -> None:
        job = self._get(job_id)
        if job.status in ACTIVE_STATUSES:
            job.status = JobStatus.PAUSED
            log.info("Paused job %s", job_id)

    async def resume_job(self, job_id: str) -> None:
        job = self._get(job_id)
        if job.status is JobStatus.PAUSED:
            job.status = JobStatus.RUNNING
            log.info("Resumed job %s", job_id)

    async def find_job_by_id(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)
