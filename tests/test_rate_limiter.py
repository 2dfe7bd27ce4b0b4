# File: tests/test_rate_limiter.py
from __future__ import annotations

import asyncio
import time

import pytest

from doccrawler.crawler.rate_limiter import TokenBucketRateLimiter

RATE_MS = 100
TOLERANCE = 0.01


@pytest.mark.asyncio()
async def test_first_token_is_immediate():
    limiter = TokenBucketRateLimiter(default_rate_limit_ms=5000)
    start = time.monotonic()
    await limiter.acquire_token("x.com")
    assert time.monotonic() - start < 0.5


@pytest.mark.asyncio()
async def test_consecutive_acquires_are_spaced():
    limiter = TokenBucketRateLimiter(default_rate_limit_ms=RATE_MS)
    await limiter.acquire_token("x.com")
    first = time.monotonic()
    await limiter.acquire_token("x.com")
    second = time.monotonic()
    await limiter.acquire_token("x.com")
    third = time.monotonic()
    assert second - first >= RATE_MS / 1000 - TOLERANCE
    assert third - second >= RATE_MS / 1000 - TOLERANCE


@pytest.mark.asyncio()
async def test_domains_are_independent():
    limiter = TokenBucketRateLimiter(default_rate_limit_ms=5000)
    await limiter.acquire_token("a.com")
    start = time.monotonic()
    await limiter.acquire_token("b.com")
    assert time.monotonic() - start < 0.5


@pytest.mark.asyncio()
async def test_release_wakes_waiter_early():
    limiter = TokenBucketRateLimiter(default_rate_limit_ms=5000)
    await limiter.acquire_token("x.com")

    async def release_soon():
        await asyncio.sleep(0.05)
        limiter.release_token("x.com")

    start = time.monotonic()
    await asyncio.gather(limiter.acquire_token("x.com"), release_soon())
    assert time.monotonic() - start < 1.0


def test_release_never_exceeds_max():
    limiter = TokenBucketRateLimiter(default_rate_limit_ms=RATE_MS, max_tokens=2)
    asyncio.run(limiter.acquire_token("x.com"))
    for _ in range(5):
        limiter.release_token("x.com")
    assert limiter.get_stats()["x.com"]["tokens"] == 2


def test_release_unknown_domain_is_noop():
    limiter = TokenBucketRateLimiter()
    limiter.release_token("never-seen.com")
    assert limiter.get_stats() == {}


@pytest.mark.asyncio()
async def test_waiters_served_in_arrival_order():
    limiter = TokenBucketRateLimiter(default_rate_limit_ms=30)
    await limiter.acquire_token("x.com")
    order: list[int] = []

    async def worker(n: int) -> None:
        await limiter.acquire_token("x.com")
        order.append(n)

    tasks = []
    for n in range(4):
        tasks.append(asyncio.create_task(worker(n)))
        await asyncio.sleep(0)
    await asyncio.gather(*tasks)
    assert order == [0, 1, 2, 3]


@pytest.mark.asyncio()
async def test_larger_bucket_allows_bursts():
    limiter = TokenBucketRateLimiter(default_rate_limit_ms=5000, max_tokens=3)
    start = time.monotonic()
    for _ in range(3):
        await limiter.acquire_token("x.com")
    assert time.monotonic() - start < 0.5


def test_rate_limit_overrides_and_reset():
    limiter = TokenBucketRateLimiter(default_rate_limit_ms=1000)
    assert limiter.get_rate_limit("x.com") == 1000
    limiter.set_rate_limit("x.com", 250)
    assert limiter.get_rate_limit("x.com") == 250
    assert limiter.get_rate_limit("y.com") == 1000
    limiter.reset()
    assert limiter.get_rate_limit("x.com") == 1000
    with pytest.raises(ValueError):
        limiter.set_rate_limit("x.com", 0)


@pytest.mark.asyncio()
async def test_set_rate_limit_applies_to_existing_bucket():
    limiter = TokenBucketRateLimiter(default_rate_limit_ms=5000)
    await limiter.acquire_token("x.com")
    limiter.set_rate_limit("x.com", 50)
    start = time.monotonic()
    await limiter.acquire_token("x.com")
    assert time.monotonic() - start < 1.0
