"""Lifecycle event model published on the real-time event channel."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class PipelineEvent(BaseModel):
    """A single lifecycle event emitted by an orchestrator.

    Event names are namespaced by emitter:

    - ``research:*``      — Research orchestrator phases (queries, searches, fetches, pack).
    - ``orchestrator:*``  — Analysis orchestrator phase transitions and completion.
    - ``node:*``          — Per-node cache hit/miss, start, end and error.
    """

    event: str = Field(description="Event name, e.g. research:dedupe or node:end")
    job_id: str = Field(description="Job the event belongs to")
    data: dict[str, Any] = Field(default_factory=dict, description="Event payload")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def terminal(self) -> bool:
        """Whether this event ends an analysis stream."""
        return self.event in ("orchestrator:complete", "orchestrator:error")
