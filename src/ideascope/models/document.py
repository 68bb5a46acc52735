"""Document models — search hits, fetched documents, and ranked documents.

``SearchResult`` is what a search provider returns for a query. The content
fetcher turns each distinct URL into a ``Document``; the ranker wraps the
surviving documents as ``RankedDocument``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field


def extract_domain(url: str) -> str:
    """Return the host of *url* without a leading ``www.`` (``"unknown"`` if unparseable)."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return "unknown"
    if not host:
        return "unknown"
    return host[4:] if host.startswith("www.") else host


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SearchResultMetadata(BaseModel):
    """Provenance of a search hit."""

    domain: str = Field(description="Host of the result URL without 'www.'")
    source: str = Field(description="Search provider that produced the hit")
    fetched_at: datetime = Field(default_factory=_utcnow, description="When the provider returned the hit")
    score: float = Field(default=0.5, description="Provider relevance score")
    published_date: datetime | None = Field(default=None, description="Publication date if the provider knows it")


class SearchResult(BaseModel):
    """A single normalized hit from a search provider."""

    url: str = Field(description="Result URL")
    title: str = Field(default="", description="Result title")
    snippet: str = Field(default="", description="Short snippet or description")
    content: str | None = Field(default=None, description="Provider-supplied content, if any")
    metadata: SearchResultMetadata


class DocumentMetadata(BaseModel):
    """Metadata attached to a fetched document."""

    model_config = ConfigDict(frozen=True)

    domain: str = Field(default="unknown", description="Host of the document URL without 'www.'")
    fetched_at: datetime = Field(default_factory=_utcnow, description="When the document was fetched")
    published_date: datetime | None = Field(default=None, description="Publication date carried from the search hit")
    pages: int | None = Field(default=None, description="Page count for PDF documents")
    blocked: bool = Field(default=False, description="Fetch was disallowed by robots.txt")
    error: bool = Field(default=False, description="Fetch or extraction failed")
    error_message: str | None = Field(default=None, description="Failure detail when error is set")


class Document(BaseModel):
    """A fetched web document with normalized plain-text content."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Document URL as fetched")
    title: str = Field(default="", description="Document title")
    content: str = Field(default="", description="Normalized plain text, bounded length")
    content_hash: str | None = Field(default=None, description="sha256 of the content, None when empty")
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)

    @property
    def usable(self) -> bool:
        """Whether the document carries content that can enter ranking."""
        return bool(self.content) and not self.metadata.blocked and not self.metadata.error


class RankedDocument(Document):
    """A document with its heuristic ranking score."""

    rank_score: float = Field(default=0.0, description="Recency + authority + query overlap score")
