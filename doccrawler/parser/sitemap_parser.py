# File: doccrawler/parser/sitemap_parser.py
"""doccrawler.parser.sitemap_parser: URLs from sitemap.xml and sitemap index files."""

from __future__ import annotations

from typing import List

from lxml import etree

__all__ = ("parse_sitemap", "is_sitemap_index")


def _root(xml_content: str):
    parser = etree.XMLParser(ns_clean=True, recover=True)
    return etree.fromstring(xml_content.encode("utf-8"), parser=parser)


def parse_sitemap(xml_content: str) -> List[str]:
    """Return the text of every ``<loc>`` element.

    Broken XML is recovered as far as lxml can; an empty or unparsable
    document yields an empty list.
    """
    if not xml_content.strip():
        return []
    root = _root(xml_content)
    if root is None:
        return []
    locs = root.findall(".//{*}loc")
    return [loc.text.strip() for loc in locs if loc.text and loc.text.strip()]


def is_sitemap_index(xml_content: str) -> bool:
    """True when the document is a ``<sitemapindex>`` pointing at other sitemaps."""
    if not xml_content.strip():
        return False
    root = _root(xml_content)
    return root is not None and etree.QName(root).localname == "sitemapindex"
