# === FILE: doccrawler/parser/html_parser.py ===
"""HTML parsing shared by both content extractors.

:func:`parse_html` turns markup into a :class:`ParsedPage`:

* title: document ``<title>`` text or ``""`` if absent.
* text: visible text with scripts, styles and embedded media removed.
* metadata: description, keywords, language, canonical URL, author,
  last-modified and every Open Graph ``og:*`` property.
* links: absolute document URLs from ``<a href>`` (images, archives,
  binaries and other non-document files excluded).

Markup that is empty, or that has neither a ``<body>`` nor a ``<title>``
after parsing, is not a usable document and raises
:class:`~doccrawler.errors.ContentError`.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup
from bs4.element import Tag

from doccrawler.errors import ContentError
from doccrawler.utils import extract_domain, is_excluded_resource, is_valid_url, resolve_url

__all__: Sequence[str] = ("ParsedPage", "parse_html", "extract_metadata", "extract_text", "extract_document_links")

_NON_TEXT_TAGS = ("script", "style", "noscript", "iframe", "img", "svg", "video", "audio", "template")
_WS_RE = re.compile(r"\s+")
_SKIP_SCHEMES = ("javascript:", "mailto:", "tel:", "data:")


@dataclass(slots=True)
class ParsedPage:
    """Lightweight representation of an HTML page."""

    url: str
    title: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    links: list[str] = field(default_factory=list)


def _attr(soup: BeautifulSoup, selector: str, name: str = "content") -> str | None:
    tag = soup.select_one(selector)
    if not isinstance(tag, Tag):
        return None
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value.strip() if isinstance(value, str) and value.strip() else None


def extract_metadata(soup: BeautifulSoup, url: str) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "domain": extract_domain(url),
        "last_modified": None,
        "author": None,
        "description": None,
        "keywords": [],
        "language": None,
        "canonical_url": None,
    }
    metadata["description"] = _attr(soup, 'meta[name="description"]') or _attr(
        soup, 'meta[property="og:description"]'
    )
    keywords = _attr(soup, 'meta[name="keywords"]')
    if keywords:
        metadata["keywords"] = [k.strip() for k in keywords.split(",") if k.strip()]
    metadata["language"] = _attr(soup, "html[lang]", "lang") or _attr(
        soup, 'meta[http-equiv="content-language"]'
    )
    canonical = _attr(soup, 'link[rel="canonical"]', "href")
    if canonical:
        metadata["canonical_url"] = resolve_url(canonical, url)
    metadata["author"] = _attr(soup, 'meta[name="author"]') or _attr(soup, 'meta[property="article:author"]')
    metadata["last_modified"] = _attr(soup, 'meta[http-equiv="last-modified"]')

    for tag in soup.select('meta[property^="og:"]'):
        prop, content = tag.get("property"), tag.get("content")
        if isinstance(prop, str) and isinstance(content, str) and content.strip():
            metadata[f"og_{prop[3:]}"] = content.strip()
    return metadata


def extract_text(soup: BeautifulSoup) -> str:
    """Visible text of the body (or the whole document). Mutates *soup*."""
    for element in soup(list(_NON_TEXT_TAGS)):
        element.decompose()
    root = soup.body or soup
    return _WS_RE.sub(" ", root.get_text(" ")).strip()


def extract_document_links(soup: BeautifulSoup, url: str) -> list[str]:
    """Absolute http(s) links to documents, deduplicated in page order."""
    seen: set[str] = set()
    links: list[str] = []
    for tag in soup.find_all("a", href=True):
        href = tag.get("href")
        if not isinstance(href, str):
            continue
        href = href.strip()
        if not href or href.startswith("#") or href.lower().startswith(_SKIP_SCHEMES):
            continue
        absolute = resolve_url(href, url)
        if not is_valid_url(absolute) or is_excluded_resource(absolute):
            continue
        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)
    return links


def parse_html(html: str, url: str, with_links: bool = True) -> ParsedPage:
    """Parse *html* fetched from *url*. Raises ContentError for unusable markup."""
    if not html or not html.strip():
        raise ContentError(url, "empty document")

    soup = BeautifulSoup(html, "html.parser")
    if soup.body is None and soup.title is None:
        raise ContentError(url, "no <body> or <title> element")

    title = soup.title.get_text(strip=True) if soup.title else ""
    metadata = extract_metadata(soup, url)
    links = extract_document_links(soup, url) if with_links else []
    text = extract_text(soup)
    return ParsedPage(url=url, title=title, text=text, metadata=metadata, links=links)
