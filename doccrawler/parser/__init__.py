"""Markup, robots.txt and sitemap parsers."""
