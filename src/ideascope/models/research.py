"""ResearchPack — the persisted evidence bundle shared by all analysis nodes."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from ideascope.models.document import RankedDocument


class SourceRef(BaseModel):
    """A search hit recorded as a source of the pack."""

    url: str
    title: str = ""
    domain: str = "unknown"
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ResearchPack(BaseModel):
    """Queries, sources and ranked documents gathered for one idea.

    Written once per ``(idea_id, research_hash)`` combination. The
    ``research_hash`` is derived from the idea id and the sorted query list,
    so identical runs collide on the same pack and share its cache entry.
    """

    id: str = Field(default_factory=lambda: f"pack_{uuid.uuid4().hex[:12]}", description="Pack identifier")
    idea_id: str = Field(description="Idea this pack was built for")
    research_hash: str = Field(description="Fingerprint of idea id + sorted queries")
    queries: list[str] = Field(default_factory=list, description="Queries sent to the search providers")
    sources: list[SourceRef] = Field(default_factory=list, description="Distinct search hits")
    documents: list[RankedDocument] = Field(default_factory=list, description="Ranked documents, best first")
    facts: list[str] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)
    assumptions: list[str] = Field(default_factory=list)
    ttl: datetime = Field(description="Expiry timestamp of the pack")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def top_documents(self, limit: int) -> list[RankedDocument]:
        """Return the *limit* best-ranked documents."""
        return self.documents[:limit]
