# File: tests/conftest.py
from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web

from doccrawler.config import CrawlConfig


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


ServeApp = Callable[[web.Application], Awaitable[str]]


@pytest_asyncio.fixture
async def serve_app(unused_tcp_port_factory) -> AsyncIterator[ServeApp]:
    """Start aiohttp applications on free ports; every runner is cleaned up afterwards."""
    runners: list[web.AppRunner] = []

    async def _start(app: web.Application) -> str:
        runner = web.AppRunner(app)
        await runner.setup()
        port = unused_tcp_port_factory()
        site = web.TCPSite(runner, "127.0.0.1", port)
        await site.start()
        runners.append(runner)
        return f"http://127.0.0.1:{port}"

    try:
        yield _start
    finally:
        for runner in runners:
            await runner.cleanup()


@pytest.fixture()
def make_config() -> Callable[..., CrawlConfig]:
    """
    Return a factory for CrawlConfig with fast test-friendly defaults.
    """

    def _make(base_url: str = "http://example.com", **overrides: Any) -> CrawlConfig:
        values: dict[str, Any] = {
            "base_url": base_url,
            "max_depth": 1,
            "rate_limit": 10,
            "timeout": 2000,
            "user_agent": "TestAgent/1.0",
            "robots_retries": 0,
        }
        values.update(overrides)
        return CrawlConfig(**values)

    return _make


def html_page(title: str, body: str = "", head: str = "") -> str:
    return f"<!DOCTYPE html><html><head><title>{title}</title>{head}</head><body>{body}</body></html>"


@pytest.fixture()
def page():
    """Expose the HTML page builder to tests."""
    return html_page
