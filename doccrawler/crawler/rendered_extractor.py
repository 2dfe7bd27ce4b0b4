# File: doccrawler/crawler/rendered_extractor.py
"""
Headless-browser extractor for script-rendered pages (Playwright/Chromium).

One browser is launched lazily and shared by every extraction; each
extraction gets its own page, which is always closed afterwards.
"""
from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Sequence, Set

from playwright.async_api import Browser, Page, Playwright, Route, async_playwright
from playwright.async_api import Error as PlaywrightError

from doccrawler.crawler.models import ExtractedContent, ExtractionOptions, PageType
from doccrawler.errors import BrowserLaunchError, FetchError
from doccrawler.logger import get_logger
from doccrawler.parser.html_parser import parse_html

__all__ = ("RenderedExtractor",)

log = get_logger("rendered-extractor")

DEFAULT_BLOCKED_RESOURCES: Sequence[str] = ("image", "font", "media")

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

_FRAMEWORKS_JS = """
() => {
  const found = [];
  if (document.querySelector('[data-reactroot], [data-reactid]') || window.__REACT_DEVTOOLS_GLOBAL_HOOK__) {
    found.push('react');
  }
  if (document.querySelector('[ng-app], [ng-controller], [ng-version]') || window.getAllAngularRootElements) {
    found.push('angular');
  }
  if (document.querySelector('[data-v-app]') || window.__VUE__) {
    found.push('vue');
  }
  if (window.__NEXT_DATA__) found.push('next');
  if (window.__NUXT__) found.push('nuxt');
  return found;
}
"""


def _reason(exc: Exception, default: str) -> str:
    """First line of a Playwright error message, which can run to a full call log."""
    text = str(exc)
    return text.splitlines()[0] if text else default


class RenderedExtractor:
    """Renders pages in Chromium before parsing them like the static extractor."""

    def __init__(
        self,
        headless: bool = True,
        blocked_resource_types: Sequence[str] = DEFAULT_BLOCKED_RESOURCES,
        viewport: Optional[dict[str, int]] = None,
    ) -> None:
        self.headless = headless
        self.blocked_resource_types = frozenset(blocked_resource_types)
        self.viewport = viewport or {"width": 1920, "height": 1080}
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launch_lock = asyncio.Lock()
        self._pages: Set[Page] = set()

    # ---- browser lifecycle ------------------------------------------------ #

    @property
    def browser_started(self) -> bool:
        return self._browser is not None

    async def _ensure_browser(self) -> Browser:
        if self._browser is not None:
            return self._browser
        async with self._launch_lock:
            # another caller may have launched while we waited
            if self._browser is not None:
                return self._browser
            log.debug("Launching headless Chromium")
            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless, args=_LAUNCH_ARGS
                )
            except Exception as exc:  # noqa: BLE001
                await self._stop_driver()
                log.error("Failed to launch browser: %s", exc)
                raise BrowserLaunchError(f"Failed to launch browser: {exc}") from exc
            log.info("Headless browser started")
            return self._browser

    async def _stop_driver(self) -> None:
        playwright, self._playwright, self._browser = self._playwright, None, None
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as exc:  # noqa: BLE001
                log.debug("Error stopping Playwright: %s", exc)

    async def _route_handler(self, route: Route) -> None:
        if route.request.resource_type in self.blocked_resource_types:
            await route.abort()
        else:
            await route.continue_()

    @asynccontextmanager
    async def _rendered_page(self, url: str, options: ExtractionOptions) -> AsyncIterator[Page]:
        """
        Open a page, navigate to *url* and wait; the page is closed on exit.

        Any Playwright error raised during the session, including inside the
        ``async with`` body, surfaces as :class:`FetchError` for *url*.
        """
        browser = await self._ensure_browser()
        try:
            page = await browser.new_page(user_agent=options.user_agent, viewport=self.viewport)
        except PlaywrightError as exc:
            # a disconnected browser never recovers; relaunch on the next call
            log.warning("Could not open a page, dropping the browser: %s", _reason(exc, "new page failed"))
            await self._stop_driver()
            raise FetchError(url, reason=_reason(exc, "new page failed")) from exc

        self._pages.add(page)
        try:
            if self.blocked_resource_types:
                await page.route("**/*", self._route_handler)

            log.debug("Navigating to %s", url)
            try:
                response = await page.goto(url, wait_until="networkidle", timeout=options.timeout_ms)
            except PlaywrightError as exc:
                raise FetchError(url, reason=_reason(exc, "navigation failed")) from exc
            if response is None:
                raise FetchError(url, reason="no response")
            if response.status >= 400:
                raise FetchError(url, status=response.status)

            if options.wait_for_selector:
                try:
                    await page.wait_for_selector(options.wait_for_selector, timeout=options.selector_timeout_ms)
                except PlaywrightError as exc:
                    raise FetchError(url, reason=f"selector {options.wait_for_selector!r} not found") from exc
            if options.wait_for_timeout_ms:
                await asyncio.sleep(options.wait_for_timeout_ms / 1000)
            yield page
        except PlaywrightError as exc:
            raise FetchError(url, reason=_reason(exc, "page session failed")) from exc
        finally:
            self._pages.discard(page)
            try:
                await page.close()
            except Exception as exc:  # noqa: BLE001
                log.debug("Error closing page for %s: %s", url, exc)

    # ---- ContentExtractor ------------------------------------------------- #

    async def extract(self, url: str, options: Optional[ExtractionOptions] = None) -> ExtractedContent:
        options = options or ExtractionOptions()
        started = time.monotonic()
        try:
            async with self._rendered_page(url, options) as page:
                html = await page.content()
                title = await page.title()
                frameworks: List[str] = await page.evaluate(_FRAMEWORKS_JS)
                final_url = page.url or url
        except FetchError as exc:
            log.error("Error extracting %s: %s", url, exc)
            raise

        parsed = parse_html(html, final_url, with_links=options.extract_links)
        metadata: dict[str, Any] = parsed.metadata
        metadata["rendered_with"] = "browser"
        if frameworks:
            metadata["frameworks"] = frameworks
        log.debug("Rendered %s in %.0f ms", url, (time.monotonic() - started) * 1000)
        return ExtractedContent(
            url=final_url,
            title=title or parsed.title,
            raw_content=html,
            plain_text=parsed.text,
            metadata=metadata,
            links=parsed.links,
        )

    async def render_html(self, url: str, options: Optional[ExtractionOptions] = None) -> str:
        """Fully rendered markup of *url*."""
        async with self._rendered_page(url, options or ExtractionOptions()) as page:
            return await page.content()

    def supports_page_type(self, page_type: PageType) -> bool:
        return page_type is PageType.SPA

    @property
    def open_pages(self) -> int:
        return len(self._pages)

    async def cleanup(self) -> None:
        """Close open pages, the browser and the driver. Safe to call repeatedly."""
        for page in list(self._pages):
            try:
                await page.close()
            except Exception as exc:  # noqa: BLE001
                log.debug("Error closing page: %s", exc)
        self._pages.clear()
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:  # noqa: BLE001
                log.debug("Error closing browser: %s", exc)
        await self._stop_driver()
