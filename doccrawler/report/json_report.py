# doccrawler/report/json_report.py

"""
JSON report of one crawl: the job record and its documents.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from doccrawler.engine import CrawlResult


def render_json(result: "CrawlResult", output_path: Path | str, pretty: bool = True, include_content: bool = True) -> Path:
    """
    Write *result* as JSON to *output_path* and return the path.

    Example:
    ```python
    from doccrawler.report.json_report import render_json
    path = render_json(result, "reports/crawl.json")
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    data = result.to_dict(include_content=include_content)

    with output.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2 if pretty else None)

    return output
