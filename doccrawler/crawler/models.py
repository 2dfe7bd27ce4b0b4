# File: doccrawler/crawler/models.py
"""
Data models shared by the crawl engine components.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

__all__ = (
    "PageType",
    "DetectionMethod",
    "CrawlerState",
    "FrontierEntry",
    "PageTypeResult",
    "ExtractionOptions",
    "ExtractedContent",
    "ContentExtractor",
)


class PageType(str, Enum):
    STATIC = "static"
    SPA = "spa"


class DetectionMethod(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"
    HYBRID = "hybrid"


class CrawlerState(str, Enum):
    """In-process state of one orchestrator."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass(slots=True)
class FrontierEntry:
    """A URL waiting in the frontier and the depth it was discovered at."""

    url: str
    depth: int


@dataclass(slots=True, frozen=True)
class PageTypeResult:
    is_spa: bool
    confidence: float
    page_type: PageType
    detection_method: DetectionMethod = DetectionMethod.STATIC


@dataclass(slots=True)
class ExtractionOptions:
    """Per-call knobs for an extractor. Durations are milliseconds."""

    user_agent: str = "DocCrawler/1.0"
    timeout_ms: int = 30000
    wait_for_selector: Optional[str] = None
    wait_for_timeout_ms: Optional[int] = None
    selector_timeout_ms: int = 5000
    extract_links: bool = False


@dataclass(slots=True)
class ExtractedContent:
    """Uniform result of both extractor variants."""

    url: str
    title: str
    raw_content: str
    plain_text: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    links: List[str] = field(default_factory=list)


@runtime_checkable
class ContentExtractor(Protocol):
    """What the strategy selector hands back to the orchestrator."""

    async def extract(self, url: str, options: Optional[ExtractionOptions] = None) -> ExtractedContent:
        ...

    def supports_page_type(self, page_type: PageType) -> bool:
        ...

    async def cleanup(self) -> None:
        ...
