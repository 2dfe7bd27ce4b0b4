# File: doccrawler/crawler/detector.py
"""doccrawler.crawler.detector: static HTML vs. script-rendered page detection.

The static score sums the weights of every matched signature (framework
scripts, SPA DOM skeletons, client-side routing, a near-empty body loaded by
many scripts) and divides by a saturation weight, clamped to 1. When that
score lands in the inconclusive band and dynamic analysis is on, it is
blended with a dynamic score measuring how much visible text the rendered
page adds over the raw markup.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from doccrawler.config import DetectorConfig
from doccrawler.crawler.fetcher import Fetcher
from doccrawler.crawler.models import DetectionMethod, PageType, PageTypeResult
from doccrawler.errors import DetectionError, FetchError
from doccrawler.logger import get_logger
from doccrawler.utils import extract_domain

__all__ = ("Signature", "SpaDetector", "DynamicProbe")

log = get_logger("spa-detector")

DynamicProbe = Callable[[str], Awaitable[str]]


@dataclass(slots=True, frozen=True)
class Signature:
    name: str
    pattern: re.Pattern[str]
    weight: float


def _sig(name: str, pattern: str, weight: float) -> Signature:
    return Signature(name, re.compile(pattern, re.IGNORECASE), weight)


FRAMEWORK_SIGNATURES: Sequence[Signature] = (
    _sig("React", r"react-dom|react(?:\.production|\.development)?(?:\.min)?\.js|data-reactroot|__react", 1.0),
    _sig("Angular", r"angular(?:\.min)?\.js|@angular/|ng-version=", 1.0),
    _sig("Vue", r"vue(?:\.runtime)?(?:\.global)?(?:\.prod)?(?:\.min)?\.js|vue-router|data-v-app", 1.0),
    _sig("Ember", r"ember(?:\.min)?\.js|ember-application", 0.9),
    _sig("Backbone", r"backbone(?:\.min)?\.js", 0.8),
    _sig("Svelte", r"svelte(?:kit)?(?:\.min)?\.js|/_app/immutable/|\bsvelte-[a-z0-9]{5,}\b", 0.9),
    _sig("jQuery", r"jquery(?:[-.][\d.]+)?(?:\.slim)?(?:\.min)?\.js", 0.5),
    _sig("Next.js", r"__NEXT_DATA__|/_next/", 1.0),
    _sig("Nuxt.js", r"__NUXT__|/_nuxt/|nuxt-link", 1.0),
)

DOM_SIGNATURES: Sequence[Signature] = (
    _sig("React root", r"<div[^>]*\bid=[\"']root[\"'][^>]*>", 0.8),
    _sig("app root", r"<div[^>]*\bid=[\"']app[\"'][^>]*>", 0.8),
    _sig("Next.js root", r"<div[^>]*\bid=[\"']__next[\"'][^>]*>", 0.9),
    _sig("Angular app", r"<[^>]*\bng-app\b[^>]*>", 0.9),
    _sig("React root attribute", r"<div[^>]*\bdata-reactroot[^>]*>", 0.9),
    _sig("Vue scoped component", r"<[^>]*\bdata-v-[a-f0-9]+[^>]*>", 0.9),
    _sig("Angular controller", r"<[^>]*\bng-controller\b[^>]*>", 0.9),
)

ROUTING_SIGNATURES: Sequence[Signature] = (
    _sig("History API", r"history\.(?:pushState|replaceState)", 0.7),
    _sig("hash routing", r"location\.hash|hashchange|#!/", 0.7),
    _sig("framework router", r"router-view|router-link|ui-view|ng-view", 0.8),
    _sig("router usage", r"route-href|router\.navigate|useRouter|createRouter", 0.7),
)

MINIMAL_BODY_WEIGHT = 0.5

_BODY_RE = re.compile(r"<body[^>]*>([\s\S]*?)</body>", re.IGNORECASE)
_SCRIPT_BLOCK_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")
_SCRIPT_TAG_RE = re.compile(r"<script[^>]*>", re.IGNORECASE)
_SRC_RE = re.compile(r"src=[\"'][^\"']*[\"']", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")


def has_minimal_body(html: str) -> bool:
    """Near-empty ``<body>`` next to many script tags or script sources."""
    match = _BODY_RE.search(html)
    if not match or not match.group(1):
        return False
    body = _SCRIPT_BLOCK_RE.sub("", match.group(1))
    body = _WS_RE.sub(" ", _COMMENT_RE.sub("", body)).strip()
    scripts = len(_SCRIPT_TAG_RE.findall(html))
    sources = len(_SRC_RE.findall(html))
    return (len(body) < 500 and scripts > 3) or (len(body) < 1000 and sources > 5)


def visible_text_length(html: str) -> int:
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "noscript", "template"]):
        element.decompose()
    return len(" ".join(soup.stripped_strings))


class SpaDetector:
    """Classifies pages as STATIC or SPA; verdicts are cached per domain."""

    def __init__(
        self,
        fetcher: Fetcher,
        config: Optional[DetectorConfig] = None,
        dynamic_probe: Optional[DynamicProbe] = None,
    ) -> None:
        self.fetcher = fetcher
        self.config = config or DetectorConfig()
        self.dynamic_probe = dynamic_probe
        self._cache: Dict[str, PageTypeResult] = {}

    async def detect_page_type(self, url: str, html: Optional[str] = None) -> PageTypeResult:
        """Classify *url*. Raises :class:`DetectionError` when the page cannot be fetched."""
        domain = extract_domain(url)
        if not domain:
            log.error("Invalid URL for detection: %r", url)
            return PageTypeResult(False, 0.0, PageType.STATIC, DetectionMethod.STATIC)

        cfg = self.config
        if cfg.cache_results and domain in self._cache:
            log.debug("Using cached detection result for %s", domain)
            return self._cache[domain]

        if html is None:
            html = await self._fetch_html(url)

        score, frameworks = self.static_score(html)
        method = DetectionMethod.STATIC
        if cfg.enable_dynamic_analysis and cfg.inconclusive_low < score < cfg.inconclusive_high:
            log.debug("Static score %.2f for %s is inconclusive, running dynamic analysis", score, url)
            dynamic = await self._dynamic_score(url, html)
            score = score * cfg.static_analysis_weight + dynamic * cfg.dynamic_analysis_weight
            method = DetectionMethod.HYBRID

        score = max(0.0, min(1.0, score))
        is_spa = score >= cfg.spa_confidence_threshold
        result = PageTypeResult(
            is_spa=is_spa,
            confidence=score,
            page_type=PageType.SPA if is_spa else PageType.STATIC,
            detection_method=method,
        )
        if cfg.cache_results:
            self._cache[domain] = result
        log.info(
            "Detected %s for %s (confidence %.2f, frameworks: %s)",
            result.page_type.value, url, score, ", ".join(frameworks) or "none",
        )
        return result

    async def is_spa(self, url: str, html: Optional[str] = None) -> bool:
        return (await self.detect_page_type(url, html)).is_spa

    def reset(self) -> None:
        self._cache.clear()

    def static_score(self, html: str) -> tuple[float, List[str]]:
        """Score in [0, 1] from markup alone, plus the framework names matched."""
        total = 0.0
        frameworks: List[str] = []
        for sig in FRAMEWORK_SIGNATURES:
            if sig.pattern.search(html):
                total += sig.weight
                frameworks.append(sig.name)
        for sig in (*DOM_SIGNATURES, *ROUTING_SIGNATURES):
            if sig.pattern.search(html):
                total += sig.weight
                log.debug("Matched SPA signature: %s", sig.name)
        if has_minimal_body(html):
            total += MINIMAL_BODY_WEIGHT
        return min(1.0, total / self.config.saturation_weight), frameworks

    async def _fetch_html(self, url: str) -> str:
        try:
            result = await self.fetcher.get(url)
        except FetchError as exc:
            raise DetectionError(url, str(exc)) from exc
        if result.status != 200:
            raise DetectionError(url, f"HTTP {result.status}")
        return result.text

    async def _dynamic_score(self, url: str, html: str) -> float:
        if self.dynamic_probe is None:
            return 0.5
        try:
            rendered = await self.dynamic_probe(url)
        except Exception as exc:  # noqa: BLE001
            log.warning("Dynamic analysis failed for %s: %s", url, exc)
            return 0.5
        before = visible_text_length(html)
        after = visible_text_length(rendered)
        if after <= 0:
            return 0.0
        # share of the rendered text that scripts added
        return max(0.0, min(1.0, (after - before) / after))
