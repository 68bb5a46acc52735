"""Search request options."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SearchOptions(BaseModel):
    """Options controlling a single provider search call."""

    max_results: int | None = Field(default=None, ge=1, le=50, description="Override the provider's result cap")
    include_domains: list[str] = Field(default_factory=list, description="Restrict results to these domains")
    exclude_domains: list[str] = Field(default_factory=list, description="Drop results from these domains")
