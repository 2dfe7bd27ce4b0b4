# File: doccrawler/report/__init__.py
"""doccrawler.report: crawl report writers used by the CLI."""

from __future__ import annotations

from doccrawler.report.json_report import render_json

__all__ = ["render_json"]
