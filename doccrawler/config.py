# === FILE: doccrawler/config.py ===
"""
Loading and validation of DocCrawler configuration.
Pydantic describes the schema; YAML and JSON files are accepted.
All durations are in milliseconds.
"""
from __future__ import annotations

import errno
import json
import os
import re
from pathlib import Path
from typing import Any, List, Literal, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    field_validator,
    model_validator,
)

__all__ = ["DetectorConfig", "CrawlConfig", "load_config", "STRATEGY_ALIASES"]

StrategyName = Literal["static", "rendered"]

STRATEGY_ALIASES = {
    "static": "static",
    "cheerio": "static",
    "rendered": "rendered",
    "puppeteer": "rendered",
    "browser": "rendered",
}


class DetectorConfig(BaseModel):
    """Tuning knobs of the SPA detector."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    static_analysis_weight: float = Field(0.7, ge=0, le=1)
    dynamic_analysis_weight: float = Field(0.3, ge=0, le=1)
    spa_confidence_threshold: float = Field(0.6, ge=0, le=1)
    cache_results: bool = True
    enable_dynamic_analysis: bool = False
    inconclusive_low: float = Field(0.3, ge=0, le=1)
    inconclusive_high: float = Field(0.7, ge=0, le=1)
    saturation_weight: float = Field(
        2.5, gt=0, description="Matched signal weight at which the static score reaches 1.0."
    )

    @model_validator(mode="after")
    def _check_band(self) -> DetectorConfig:
        if self.inconclusive_low > self.inconclusive_high:
            raise ValueError("inconclusive_low must not exceed inconclusive_high")
        return self


class CrawlConfig(BaseModel):
    """Configuration of one crawl run."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: HttpUrl = Field(..., description="Start URL; its host bounds the crawl.")
    max_depth: int = Field(3, ge=0, description="Maximum link depth from the start URL.")
    rate_limit: int = Field(1000, gt=0, description="Minimum interval between requests to one domain (ms).")
    respect_robots_txt: bool = Field(True, description="Honour robots.txt allow/disallow and crawl-delay.")
    user_agent: str = Field("DocCrawler/1.0", min_length=1, description="User-Agent header.")
    timeout: int = Field(30000, gt=0, description="Per-request / navigation timeout (ms).")
    force_strategy: Optional[StrategyName] = Field(
        None, description="Skip page-type detection and always use this extractor."
    )
    max_redirects: int = Field(5, ge=0, description="Redirects followed per request.")
    reuse_cached_content: bool = Field(False, description="Copy fresh documents instead of refetching.")
    cache_expiry_days: int = Field(7, ge=0, description="Age limit for reusable documents.")
    concurrency: int = Field(1, ge=1, description="Tokens per domain bucket.")
    include_patterns: List[str] = Field(default_factory=list, description="Regexes a discovered URL must match.")
    exclude_patterns: List[str] = Field(default_factory=list, description="Regexes that drop a discovered URL.")
    seed_from_sitemap: bool = Field(False, description="Seed the frontier from robots.txt sitemaps.")
    robots_retries: int = Field(2, ge=0, description="Extra attempts when fetching robots.txt.")
    wait_for_selector: Optional[str] = Field(None, description="Selector awaited by the rendered extractor.")
    wait_for_timeout: Optional[int] = Field(None, ge=0, description="Fixed delay after navigation (ms).")
    detector: DetectorConfig = Field(default_factory=DetectorConfig)

    @field_validator("force_strategy", mode="before")
    def _resolve_strategy_alias(cls, v: Any) -> Any:
        if isinstance(v, str):
            key = v.strip().lower()
            if key not in STRATEGY_ALIASES:
                raise ValueError(f"unknown extraction strategy: {v!r}")
            return STRATEGY_ALIASES[key]
        return v

    @field_validator("include_patterns", "exclude_patterns")
    def _check_patterns(cls, v: List[str]) -> List[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"invalid pattern {pattern!r}: {exc}") from exc
        return v

    @property
    def start_url(self) -> str:
        return str(self.base_url)


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None], **overrides: Any) -> CrawlConfig:
    """
    Read YAML or JSON and return a validated CrawlConfig.
    Keyword *overrides* win over file values (``None`` values are ignored).
    Raises FileNotFoundError when the file (or the default one) is missing.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    data.update({k: v for k, v in overrides.items() if v is not None})
    return CrawlConfig(**data)
