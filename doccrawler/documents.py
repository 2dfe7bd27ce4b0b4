# File: doccrawler/documents.py
"""doccrawler.documents: extracted-document records and the Document Sink collaborator."""
from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from doccrawler.logger import get_logger
from doccrawler.utils import normalize_url

__all__ = ("DocumentCreateData", "Document", "DocumentSink", "InMemoryDocumentSink")

log = get_logger("documents")


@dataclass(slots=True)
class DocumentCreateData:
    url: str
    title: str
    content: str
    metadata: Dict[str, Any]
    crawl_date: datetime
    level: int
    job_id: str


@dataclass(slots=True)
class Document:
    url: str
    title: str
    content: str
    metadata: Dict[str, Any]
    crawl_date: datetime
    level: int
    job_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self, include_content: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "metadata": self.metadata,
            "crawl_date": self.crawl_date.isoformat(),
            "level": self.level,
            "job_id": self.job_id,
        }
        if include_content:
            data["content"] = self.content
        return data


@runtime_checkable
class DocumentSink(Protocol):
    async def create_document(self, data: DocumentCreateData) -> Document: ...

    async def find_recent_document(self, url: str, max_age_days: int) -> Optional[Document]: ...

    async def copy_document(self, existing: Document, job_id: str, level: int) -> Document: ...


class InMemoryDocumentSink:
    """Keeps every document in memory, newest last."""

    def __init__(self) -> None:
        self._documents: List[Document] = []

    async def create_document(self, data: DocumentCreateData) -> Document:
        doc = Document(
            url=data.url,
            title=data.title,
            content=data.content,
            metadata=dict(data.metadata),
            crawl_date=data.crawl_date,
            level=data.level,
            job_id=data.job_id,
        )
        self._documents.append(doc)
        log.debug("Stored document %s (%s)", doc.id, doc.url)
        return doc

    async def find_recent_document(self, url: str, max_age_days: int) -> Optional[Document]:
        cutoff = datetime.now(timezone.utc) - timedelta(days=max_age_days)
        key = normalize_url(url)
        for doc in reversed(self._documents):
            if normalize_url(doc.url) == key and doc.crawl_date >= cutoff:
                return doc
        return None

    async def copy_document(self, existing: Document, job_id: str, level: int) -> Document:
        metadata = copy.deepcopy(existing.metadata)
        metadata["copied_from"] = existing.id
        doc = Document(
            url=existing.url,
            title=existing.title,
            content=existing.content,
            metadata=metadata,
            crawl_date=existing.crawl_date,
            level=level,
            job_id=job_id,
        )
        self._documents.append(doc)
        log.debug("Copied document %s into job %s", existing.id, job_id)
        return doc

    def documents_for_job(self, job_id: str) -> List[Document]:
        return [d for d in self._documents if d.job_id == job_id]

    def __len__(self) -> int:
        return len(self._documents)
