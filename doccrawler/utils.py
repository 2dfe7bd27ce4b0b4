# File: doccrawler/utils.py
"""doccrawler.utils: URL helpers shared by the frontier, robots policy, extractors and link extractor."""

from __future__ import annotations

import posixpath
from typing import Collection, List, Optional, Sequence
from urllib.parse import parse_qsl, quote, unquote, urlencode, urljoin, urlparse, urlunparse

from doccrawler.logger import get_logger

__all__: Sequence[str] = (
    "EXCLUDED_EXTENSIONS",
    "normalize_url",
    "is_valid_url",
    "extract_domain",
    "resolve_url",
    "is_same_domain",
    "get_root_url",
    "is_excluded_resource",
    "remove_duplicates",
)

log = get_logger("urls")

EXCLUDED_EXTENSIONS: tuple[str, ...] = (
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".svg", ".ico",
    ".css", ".js", ".json", ".xml", ".csv", ".rss",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".zip", ".tar", ".gz", ".rar", ".7z",
    ".mp3", ".mp4", ".avi", ".mkv", ".mov", ".wav", ".ogg", ".webm",
    ".exe", ".bin", ".iso", ".dmg", ".msi",
)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Canonical form used for every URL comparison in the engine.

    Lower-cases scheme and host, drops the default port and the fragment,
    collapses ``.``/``..`` segments, sorts query parameters and strips the
    trailing slash (the site root collapses to ``scheme://host``).
    Strings that are not absolute http(s) URLs come back unchanged.
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    if scheme not in _DEFAULT_PORTS or not parsed.netloc:
        return url

    host = (parsed.hostname or "").lower()
    try:
        port = parsed.port
    except ValueError:
        return url
    netloc = host if port in (None, _DEFAULT_PORTS[scheme]) else f"{host}:{port}"
    if parsed.username:
        netloc = f"{parsed.username}@{netloc}"

    path = unquote(parsed.path or "/")
    norm = posixpath.normpath(path) if path != "/" else "/"
    if not norm.startswith("/"):
        norm = "/" + norm
    norm = quote(norm, safe="/:@!$&'()*+,;=-._~")
    norm = norm.rstrip("/")

    qs = parse_qsl(parsed.query, keep_blank_values=True)
    qs.sort()
    query = urlencode(qs, doseq=True)

    return urlunparse((scheme, netloc, norm, "", query, ""))


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def extract_domain(url: str) -> Optional[str]:
    """Hostname of *url* (lower-case, without port) or None for unparsable input."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    return host or None


def resolve_url(href: str, base: str) -> str:
    """Resolve a possibly relative *href* against *base*."""
    return urljoin(base, href.strip())


def is_same_domain(url: str, base_url: str) -> bool:
    domain = extract_domain(url)
    return domain is not None and domain == extract_domain(base_url)


def get_root_url(url: str) -> str:
    """``scheme://netloc`` of *url*; robots.txt lives under this origin."""
    parsed = urlparse(url)
    return urlunparse((parsed.scheme.lower(), parsed.netloc.lower(), "", "", "", ""))


def is_excluded_resource(url: str) -> bool:
    """True when the URL path points at a non-document file (image, archive, binary…)."""
    path = urlparse(url).path.lower()
    return path.endswith(EXCLUDED_EXTENSIONS)


def remove_duplicates(urls: Collection[str]) -> List[str]:
    """Remove duplicates while keeping the first-seen order."""
    unique = list(dict.fromkeys(urls))
    removed = len(urls) - len(unique)
    if removed:
        log.debug("Removed %d duplicate URLs", removed)
    return unique
