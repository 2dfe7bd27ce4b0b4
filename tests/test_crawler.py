# File: tests/test_crawler.py
# End-to-end tests of the crawl orchestrator against local aiohttp sites
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Awaitable, Callable, Union
from urllib.parse import urlsplit

import pytest
from aiohttp import web
from playwright.async_api import Error as PlaywrightError

from doccrawler.crawler.models import CrawlerState, ExtractedContent, PageType
from doccrawler.crawler.rendered_extractor import RenderedExtractor
from doccrawler.documents import InMemoryDocumentSink
from doccrawler.engine import Engine
from doccrawler.errors import CrawlerError
from doccrawler.jobs import InMemoryJobManager, JobCreateData, JobStatus

#: overall ceiling for a single crawl in these tests
CRAWL_TIMEOUT: float = 15.0

Route = Union[str, int, tuple, Callable[[web.Request], Awaitable[web.StreamResponse]]]


# --------------------------------------------------------------------------- #
#                               Helper utilities                              #
# --------------------------------------------------------------------------- #


def html_page(title: str, body: str = "", head: str = "") -> str:
    return f"<!DOCTYPE html><html><head><title>{title}</title>{head}</head><body>{body}</body></html>"


def links(*paths: str) -> str:
    return "".join(f'<a href="{p}">{p}</a>' for p in paths)


def site_app(routes: dict[str, Route]) -> web.Application:
    """
    Serve *routes*: a string is an HTML 200 body, an int is a bare status,
    ``("slow", seconds, html)`` sleeps before answering, a callable is a handler.
    """
    app = web.Application()
    hits: dict[str, int] = {}
    app["hits"] = hits

    def make_handler(path: str, answer: Route):
        async def handler(_request):
            hits[path] = hits.get(path, 0) + 1
            if callable(answer):
                return await answer(_request)
            if isinstance(answer, int):
                return web.Response(status=answer, text="error")
            if isinstance(answer, tuple):
                _, delay, body = answer
                await asyncio.sleep(delay)
                return web.Response(text=body, content_type="text/html")
            return web.Response(text=answer, content_type="text/html")

        return handler

    for path, answer in routes.items():
        app.router.add_get(path, make_handler(path, answer))
    return app


async def wait_for_documents(sink: InMemoryDocumentSink, job_id: str, count: int, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while len(sink.documents_for_job(job_id)) < count:
        if loop.time() > deadline:
            raise AssertionError(f"fewer than {count} documents stored within {timeout}s")
        await asyncio.sleep(0.01)


def paths_of(documents) -> set[str]:
    return {urlsplit(d.url).path or "/" for d in documents}


class FakeRenderedExtractor:
    """Stands in for the browser extractor; records which URLs it rendered."""

    def __init__(self) -> None:
        self.rendered: list[str] = []
        self.cleaned = False

    async def extract(self, url, options=None):
        self.rendered.append(url)
        return ExtractedContent(
            url=url,
            title="rendered",
            raw_content="<html><body><p>rendered</p></body></html>",
            plain_text="rendered",
            metadata={"rendered_with": "browser"},
        )

    async def render_html(self, url, options=None):
        return "<html><body><p>rendered</p></body></html>"

    def supports_page_type(self, page_type):
        return page_type is PageType.SPA

    async def cleanup(self):
        self.cleaned = True


LINEAR_SITE = {
    "/": html_page("Home", links("/page1")),
    "/page1": html_page("Page 1", "<p>Leaf page</p>"),
}


# --------------------------------------------------------------------------- #
#                                  Scenarios                                  #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_linear_site(serve_app, make_config):
    base = await serve_app(site_app(LINEAR_SITE))
    async with Engine(make_config(base)) as engine:
        result = await asyncio.wait_for(engine.run(), CRAWL_TIMEOUT)

    job = result.job
    assert job.status is JobStatus.COMPLETED
    assert job.progress == 1.0
    assert job.error is None
    assert job.stats.pages_processed == 2
    assert paths_of(result.documents) == {"/", "/page1"}
    assert sorted(d.level for d in result.documents) == [0, 1]
    titles = {d.title for d in result.documents}
    assert titles == {"Home", "Page 1"}
    assert all(d.metadata["rendered_with"] == "static" for d in result.documents)


@pytest.mark.asyncio()
async def test_per_url_errors_do_not_abort_crawl(serve_app, make_config):
    routes = {
        "/": html_page("Home", links("/good", "/missing", "/error", "/slow", "/malformed")),
        "/good": html_page("Good", "<p>fine</p>"),
        "/missing": 404,
        "/error": 500,
        "/slow": ("slow", 1.5, html_page("Slow")),
        "/malformed": (
            "<!DOCTYPE html><html><head><titl Invalid HTML with unclosed tags "
            "<p>Missing closing tags"
        ),
    }
    base = await serve_app(site_app(routes))
    async with Engine(make_config(base, timeout=500)) as engine:
        result = await asyncio.wait_for(engine.run(), CRAWL_TIMEOUT)

    job = result.job
    assert job.status is JobStatus.COMPLETED
    assert paths_of(result.documents) == {"/", "/good"}
    assert job.stats.error_count == 4
    assert job.error is not None and "errors during crawling" in job.error


@pytest.mark.asyncio()
async def test_depth_bound(serve_app, make_config):
    routes = {
        "/": html_page("Root", links("/a")),
        "/a": html_page("A", links("/b")),
        "/b": html_page("B", links("/c")),
        "/c": html_page("C"),
    }
    app = site_app(routes)
    base = await serve_app(app)

    async with Engine(make_config(base, max_depth=1)) as engine:
        result = await engine.run()
    assert paths_of(result.documents) == {"/", "/a"}
    assert "/b" not in app["hits"]

    async with Engine(make_config(base, max_depth=0)) as engine:
        result = await engine.run()
    assert paths_of(result.documents) == {"/"}


@pytest.mark.asyncio()
async def test_robots_disallow_respected(serve_app, make_config):
    routes = {
        "/robots.txt": "User-agent: *\nDisallow: /private",
        "/": html_page("Root", links("/private/x", "/public")),
        "/private/x": html_page("Secret"),
        "/public": html_page("Public"),
    }
    app = site_app(routes)
    base = await serve_app(app)

    async with Engine(make_config(base)) as engine:
        result = await engine.run()
    assert paths_of(result.documents) == {"/", "/public"}
    assert result.job.stats.pages_skipped == 1
    assert "/private/x" not in app["hits"]

    async with Engine(make_config(base, respect_robots_txt=False)) as engine:
        result = await engine.run()
    assert paths_of(result.documents) == {"/", "/public", "/private/x"}


@pytest.mark.asyncio()
async def test_include_and_exclude_patterns(serve_app, make_config):
    routes = {
        "/": html_page("Root", links("/docs/a", "/docs/b", "/blog/c")),
        "/docs/a": html_page("A"),
        "/docs/b": html_page("B"),
        "/blog/c": html_page("C"),
    }
    base = await serve_app(site_app(routes))
    config = make_config(base, include_patterns=[r"/docs/"], exclude_patterns=[r"/docs/b$"])
    async with Engine(config) as engine:
        result = await engine.run()
    assert paths_of(result.documents) == {"/", "/docs/a"}


@pytest.mark.asyncio()
async def test_sitemap_seeding(serve_app, make_config):
    async def robots_with_sitemap(request):
        return web.Response(text=f"User-agent: *\nAllow: /\nSitemap: http://{request.host}/sitemap.xml\n")

    async def sitemap(request):
        xml = (
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            f"<url><loc>http://{request.host}/orphan</loc></url></urlset>"
        )
        return web.Response(text=xml, content_type="application/xml")

    routes = {
        "/robots.txt": robots_with_sitemap,
        "/sitemap.xml": sitemap,
        "/": html_page("Root"),
        "/orphan": html_page("Orphan"),
    }
    base = await serve_app(site_app(routes))

    async with Engine(make_config(base, seed_from_sitemap=True)) as engine:
        result = await engine.run()
    assert paths_of(result.documents) == {"/", "/orphan"}
    orphan = next(d for d in result.documents if d.url.endswith("/orphan"))
    assert orphan.level == 1


@pytest.mark.asyncio()
async def test_reuses_cached_documents(serve_app, make_config):
    app = site_app(LINEAR_SITE)
    base = await serve_app(app)
    config = make_config(base, reuse_cached_content=True)
    async with Engine(config) as engine:
        first = await engine.run()
        hits_after_first = dict(app["hits"])
        second = await engine.run()

    assert len(first.documents) == 2
    assert second.job.status is JobStatus.COMPLETED
    assert paths_of(second.documents) == {"/", "/page1"}
    original_ids = {d.id for d in first.documents}
    assert all(d.metadata["copied_from"] in original_ids for d in second.documents)
    assert app["hits"] == hits_after_first


@pytest.mark.asyncio()
async def test_spa_routed_to_rendered_extractor(serve_app, make_config):
    spa = html_page(
        "App",
        '<div id="root"></div>',
        '<script src="/static/react-dom.production.min.js"></script>',
    )
    base = await serve_app(site_app({"/": spa}))
    rendered = FakeRenderedExtractor()
    async with Engine(make_config(base), rendered_extractor=rendered) as engine:
        result = await engine.run()

    assert len(rendered.rendered) == 1
    assert result.documents[0].metadata["rendered_with"] == "browser"
    assert rendered.cleaned


@pytest.mark.asyncio()
async def test_forced_static_skips_detection(serve_app, make_config):
    spa = html_page(
        "App",
        '<div id="root"><p>server rendered fallback</p></div>',
        '<script src="/static/react-dom.production.min.js"></script>',
    )
    app = site_app({"/": spa})
    base = await serve_app(app)
    rendered = FakeRenderedExtractor()
    async with Engine(make_config(base, force_strategy="cheerio"), rendered_extractor=rendered) as engine:
        result = await engine.run()

    assert rendered.rendered == []
    assert result.documents[0].metadata["rendered_with"] == "static"
    # no separate detection request
    assert app["hits"]["/"] == 1


# --------------------------------------------------------------------------- #
#                           Lifecycle and control                             #
# --------------------------------------------------------------------------- #

MANY_PAGES = 10


def many_pages_site(delay: float = 0.05) -> dict[str, Route]:
    routes: dict[str, Route] = {"/": html_page("Root", links(*(f"/p{i}" for i in range(MANY_PAGES))))}
    for i in range(MANY_PAGES):
        routes[f"/p{i}"] = ("slow", delay, html_page(f"Page {i}"))
    return routes


async def _start(engine: Engine) -> tuple[Any, str, asyncio.Task]:
    job = await engine.job_manager.create_job(JobCreateData(url=engine.config.start_url))
    crawler = engine.build_crawler()
    task = asyncio.create_task(crawler.crawl(job.id))
    return crawler, job.id, task


@pytest.mark.asyncio()
async def test_pause_and_resume(serve_app, make_config):
    base = await serve_app(site_app(many_pages_site()))
    async with Engine(make_config(base, force_strategy="static")) as engine:
        crawler, job_id, task = await _start(engine)
        sink = engine.document_sink
        await wait_for_documents(sink, job_id, 2)

        await crawler.pause()
        assert crawler.state is CrawlerState.PAUSED
        job = await engine.job_manager.find_job_by_id(job_id)
        assert job.status is JobStatus.PAUSED

        # let an in-flight page finish, then nothing more is stored
        await asyncio.sleep(0.2)
        paused_count = len(sink.documents_for_job(job_id))
        await asyncio.sleep(0.3)
        assert len(sink.documents_for_job(job_id)) == paused_count
        assert paused_count < MANY_PAGES + 1

        await crawler.resume()
        assert crawler.state is CrawlerState.RUNNING
        stats = await asyncio.wait_for(task, CRAWL_TIMEOUT)

    assert stats.pages_processed == MANY_PAGES + 1
    assert job.status is JobStatus.COMPLETED
    assert crawler.state is CrawlerState.IDLE


@pytest.mark.asyncio()
async def test_stop_ends_run_early(serve_app, make_config):
    base = await serve_app(site_app(many_pages_site()))
    async with Engine(make_config(base, force_strategy="static")) as engine:
        crawler, job_id, task = await _start(engine)
        await wait_for_documents(engine.document_sink, job_id, 2)
        await crawler.stop()
        stats = await asyncio.wait_for(task, CRAWL_TIMEOUT)

    assert stats.pages_processed < MANY_PAGES + 1
    job = await engine.job_manager.find_job_by_id(job_id)
    assert job.status is JobStatus.COMPLETED
    assert crawler.state is CrawlerState.IDLE


@pytest.mark.asyncio()
async def test_stop_while_paused(serve_app, make_config):
    base = await serve_app(site_app(many_pages_site()))
    async with Engine(make_config(base, force_strategy="static")) as engine:
        crawler, job_id, task = await _start(engine)
        await wait_for_documents(engine.document_sink, job_id, 1)
        await crawler.pause()
        await crawler.stop()
        stats = await asyncio.wait_for(task, CRAWL_TIMEOUT)
    assert stats.pages_processed < MANY_PAGES + 1
    assert crawler.state is CrawlerState.IDLE


@pytest.mark.asyncio()
async def test_external_cancel_halts_crawl(serve_app, make_config):
    base = await serve_app(site_app(many_pages_site()))
    async with Engine(make_config(base, force_strategy="static")) as engine:
        crawler, job_id, task = await _start(engine)
        await wait_for_documents(engine.document_sink, job_id, 2)
        await engine.job_manager.cancel_job(job_id)
        stats = await asyncio.wait_for(task, CRAWL_TIMEOUT)

    job = await engine.job_manager.find_job_by_id(job_id)
    assert job.status is JobStatus.CANCELLED
    assert job.stats.pages_processed == stats.pages_processed
    assert stats.pages_processed < MANY_PAGES + 1
    assert crawler.state is CrawlerState.IDLE


@pytest.mark.asyncio()
async def test_second_crawl_rejected_while_running(serve_app, make_config):
    base = await serve_app(site_app(many_pages_site()))
    async with Engine(make_config(base, force_strategy="static")) as engine:
        crawler, job_id, task = await _start(engine)
        await wait_for_documents(engine.document_sink, job_id, 1)
        with pytest.raises(CrawlerError):
            await crawler.crawl(job_id)
        await crawler.stop()
        await asyncio.wait_for(task, CRAWL_TIMEOUT)


@pytest.mark.asyncio()
async def test_progress_snapshot(serve_app, make_config):
    base = await serve_app(site_app(LINEAR_SITE))
    async with Engine(make_config(base)) as engine:
        crawler = engine.build_crawler()
        assert crawler.get_progress()["percentage"] == 0.0
        job = await engine.job_manager.create_job(JobCreateData(url=base))
        await crawler.crawl(job.id)
        progress = crawler.get_progress()

    assert progress == {"total_urls": 2, "crawled_urls": 2, "pending_urls": 0, "percentage": 100.0}


class FailingJobManager(InMemoryJobManager):
    def __init__(self) -> None:
        super().__init__()
        self.failing = True

    async def update_progress(self, job_id, progress, stats):
        if self.failing:
            raise RuntimeError("job store unavailable")
        await super().update_progress(job_id, progress, stats)


@pytest.mark.asyncio()
async def test_unexpected_failure_marks_job_failed(serve_app, make_config):
    base = await serve_app(site_app(LINEAR_SITE))
    manager = FailingJobManager()
    async with Engine(make_config(base), job_manager=manager) as engine:
        crawler = engine.build_crawler()
        job = await manager.create_job(JobCreateData(url=base))
        with pytest.raises(RuntimeError, match="job store unavailable"):
            await crawler.crawl(job.id)

        assert crawler.state is CrawlerState.ERROR
        assert job.status is JobStatus.FAILED
        assert job.error == "job store unavailable"
        assert job.stats.pages_processed == 1

        # a crawler in ERROR can start over
        manager.failing = False
        retry = await manager.create_job(JobCreateData(url=base))
        await crawler.crawl(retry.id)
        assert retry.status is JobStatus.COMPLETED
        assert crawler.state is CrawlerState.IDLE


@pytest.mark.asyncio()
async def test_invalid_start_url_fails_job(make_config):
    manager = InMemoryJobManager()
    async with Engine(make_config(respect_robots_txt=False), job_manager=manager) as engine:
        crawler = engine.build_crawler()
        job = await manager.create_job(JobCreateData(url="not a url"))
        with pytest.raises(CrawlerError):
            await crawler.crawl(job.id, "not a url")
    assert job.status is JobStatus.FAILED
    assert "Invalid start URL" in job.error


# --------------------------------------------------------------------------- #
#                     Redirects, browser faults, detection                    #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_links_resolve_against_redirected_url(serve_app, make_config):
    async def moved(_request):
        raise web.HTTPFound("/guide/")

    routes: dict[str, Route] = {
        "/": html_page("Home", links("/guide")),
        "/guide": moved,
        "/guide/": html_page("Guide", links("intro")),
        "/guide/intro": html_page("Intro", "<p>Start here</p>"),
    }
    app = site_app(routes)
    base = await serve_app(app)
    async with Engine(make_config(base, max_depth=2)) as engine:
        result = await asyncio.wait_for(engine.run(), CRAWL_TIMEOUT)

    assert result.job.status is JobStatus.COMPLETED
    assert result.job.stats.error_count == 0
    assert "/guide/intro" in paths_of(result.documents)
    assert "/intro" not in app["hits"]
    guide = next(d for d in result.documents if d.title == "Guide")
    assert guide.metadata["final_url"] == f"{base}/guide/"


class ScriptedPage:
    """Browser page serving bodies from *site*; scripts fail on ``/navigates``."""

    def __init__(self, site: dict[str, str]) -> None:
        self.site = site
        self.url = ""

    async def route(self, pattern, handler):
        pass

    async def goto(self, url, wait_until=None, timeout=None):
        self.url = url
        return SimpleNamespace(status=200)

    async def content(self):
        return self.site.get(urlsplit(self.url).path or "/", html_page("Page", "<p>rendered</p>"))

    async def title(self):
        return "rendered"

    async def evaluate(self, script):
        if urlsplit(self.url).path == "/navigates":
            raise PlaywrightError("Execution context was destroyed, most likely because of a navigation")
        return []

    async def close(self):
        pass


class ScriptedBrowser:
    def __init__(self, site: dict[str, str]) -> None:
        self.site = site

    async def new_page(self, **kwargs):
        return ScriptedPage(self.site)

    async def close(self):
        pass


class ScriptedRenderedExtractor(RenderedExtractor):
    """Real extractor logic over an already running scripted browser."""

    def __init__(self, site: dict[str, str]) -> None:
        super().__init__()
        self._browser = ScriptedBrowser(site)


@pytest.mark.asyncio()
async def test_browser_script_error_counts_as_page_error(serve_app, make_config):
    site = {
        "/": html_page("Home", links("/navigates", "/fine")),
        "/fine": html_page("Fine", "<p>fine</p>"),
    }
    base = await serve_app(site_app({}))
    config = make_config(base, force_strategy="rendered")
    async with Engine(config, rendered_extractor=ScriptedRenderedExtractor(site)) as engine:
        result = await asyncio.wait_for(engine.run(), CRAWL_TIMEOUT)

    job = result.job
    assert job.status is JobStatus.COMPLETED
    assert paths_of(result.documents) == {"/", "/fine"}
    assert job.stats.error_count == 1
    assert "Execution context was destroyed" in job.error


@pytest.mark.asyncio()
async def test_each_crawler_has_its_own_detector(serve_app, make_config):
    app = site_app(LINEAR_SITE)
    base = await serve_app(app)
    async with Engine(make_config(base)) as engine:
        first, second = engine.build_crawler(), engine.build_crawler()
        assert first.selector is not second.selector
        assert first.selector.detector is not second.selector.detector
        assert first.selector.static_extractor is second.selector.static_extractor

        await first.selector.get_extractor_for_url(f"{base}/")
        second.selector.detector.reset()
        await first.selector.get_extractor_for_url(f"{base}/page1")

    # the second lookup was answered from the first crawler's cache
    assert app["hits"] == {"/": 1}
