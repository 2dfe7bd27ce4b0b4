# File: doccrawler/crawler/rate_limiter.py
"""doccrawler.crawler.rate_limiter: per-domain token buckets.

Each domain gets a bucket on first use. A token is produced every
``rate_limit_ms`` milliseconds up to ``max_tokens``; callers that find the
bucket empty sleep until the next token is due or a :meth:`release_token`
hands one back early. The per-domain :class:`asyncio.Lock` serialises
refill/consume and serves waiters in arrival order.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from doccrawler.logger import get_logger

__all__ = ("TokenBucket", "TokenBucketRateLimiter")

log = get_logger("rate-limiter")


@dataclass(slots=True)
class TokenBucket:
    tokens: int
    last_refill: float
    rate_limit_ms: int
    max_tokens: int
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    released: asyncio.Event = field(default_factory=asyncio.Event)

    def refill(self, now: float) -> None:
        if self.tokens >= self.max_tokens:
            # a full bucket does not bank idle time
            self.last_refill = now
            return
        interval = self.rate_limit_ms / 1000
        elapsed = now - self.last_refill
        produced = int(elapsed // interval)
        if produced <= 0:
            return
        self.tokens = min(self.max_tokens, self.tokens + produced)
        if self.tokens >= self.max_tokens:
            self.last_refill = now
        else:
            self.last_refill = now - (elapsed % interval)

    def time_to_next(self, now: float) -> float:
        interval = self.rate_limit_ms / 1000
        return max(0.0, interval - (now - self.last_refill))


class TokenBucketRateLimiter:
    """Paces requests per domain; shared by every crawl that runs in the process."""

    def __init__(self, default_rate_limit_ms: int = 1000, max_tokens: int = 1) -> None:
        if default_rate_limit_ms <= 0:
            raise ValueError("default_rate_limit_ms must be > 0")
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        self.default_rate_limit_ms = default_rate_limit_ms
        self.max_tokens = max_tokens
        self._buckets: Dict[str, TokenBucket] = {}
        self._overrides: Dict[str, int] = {}

    def _bucket(self, domain: str) -> TokenBucket:
        bucket = self._buckets.get(domain)
        if bucket is None:
            bucket = TokenBucket(
                tokens=self.max_tokens,
                last_refill=time.monotonic(),
                rate_limit_ms=self.get_rate_limit(domain),
                max_tokens=self.max_tokens,
            )
            self._buckets[domain] = bucket
        return bucket

    async def acquire_token(self, domain: str) -> None:
        """Consume one token for *domain*, sleeping until one is available."""
        bucket = self._bucket(domain)
        async with bucket.lock:
            waited = False
            while True:
                now = time.monotonic()
                bucket.refill(now)
                if bucket.tokens > 0:
                    bucket.tokens -= 1
                    if waited:
                        log.debug("Token for %s granted after wait", domain)
                    return
                waited = True
                delay = bucket.time_to_next(now)
                bucket.released.clear()
                try:
                    await asyncio.wait_for(bucket.released.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

    def release_token(self, domain: str) -> None:
        """Return a token early; never exceeds the bucket maximum."""
        bucket = self._buckets.get(domain)
        if bucket is None:
            return
        if bucket.tokens < bucket.max_tokens:
            bucket.tokens += 1
        bucket.released.set()

    def set_rate_limit(self, domain: str, rate_limit_ms: int) -> None:
        if rate_limit_ms <= 0:
            raise ValueError("rate_limit_ms must be > 0")
        self._overrides[domain] = rate_limit_ms
        bucket = self._buckets.get(domain)
        if bucket is not None:
            bucket.rate_limit_ms = rate_limit_ms
        log.debug("Rate limit for %s set to %d ms", domain, rate_limit_ms)

    def get_rate_limit(self, domain: str) -> int:
        return self._overrides.get(domain, self.default_rate_limit_ms)

    def reset(self, domain: Optional[str] = None) -> None:
        """Forget buckets and overrides for *domain*, or for every domain."""
        if domain is None:
            self._buckets.clear()
            self._overrides.clear()
        else:
            self._buckets.pop(domain, None)
            self._overrides.pop(domain, None)

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        return {
            domain: {
                "tokens": b.tokens,
                "max_tokens": b.max_tokens,
                "rate_limit_ms": b.rate_limit_ms,
                "waiting": b.lock.locked(),
            }
            for domain, b in self._buckets.items()
        }
