"""Result models — per-node results, job status, and the final analysis result."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class NodeResult(BaseModel):
    """Outcome of one analysis node invocation.

    ``data`` is only ever a schema-validated payload; a node that cannot
    produce one raises instead of returning ``success=False`` to the engine.
    """

    node: str = Field(description="Node name")
    success: bool = Field(description="Whether a validated payload was produced")
    data: dict[str, Any] | None = Field(default=None, description="Schema-validated node output")
    timing_ms: int = Field(default=0, description="Wall time of the invocation in ms")
    attempts: int = Field(default=0, description="Completion attempts used")
    cached: bool = Field(default=False, description="Served from the node-level cache")
    error: str | None = Field(default=None, description="Failure detail")

    @property
    def confidence(self) -> float | None:
        if not self.data:
            return None
        value = self.data.get("confidence")
        return float(value) if value is not None else None


class JobState(str, Enum):
    """Lifecycle state of an analysis job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


class JobStatus(BaseModel):
    """Persisted, incrementally updated status of one pipeline run."""

    job_id: str
    idea_id: str | None = None
    status: JobState = JobState.PENDING
    step: str | None = Field(default=None, description="Current phase")
    progress: int = Field(default=0, ge=0, le=100)
    message: str = ""
    error: str | None = None
    failed_phase: str | None = None
    failed_node: str | None = None
    research_pack_id: str | None = None
    node_timings: dict[str, int] = Field(default_factory=dict)
    node_attempts: dict[str, int] = Field(default_factory=dict)
    result: dict[str, Any] | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AnalysisMetadata(BaseModel):
    """Per-run timing and attempt accounting."""

    total_duration_ms: int = 0
    timings: dict[str, int] = Field(default_factory=dict)
    attempts: dict[str, int] = Field(default_factory=dict)
    cached: dict[str, bool] = Field(default_factory=dict)


class AnalysisResult(BaseModel):
    """Final result of a complete analysis run."""

    job_id: str
    idea_id: str
    research_pack_id: str
    research_hash: str
    market_analysis: dict[str, Any]
    tam_sam_estimate: dict[str, Any]
    competitor_analysis: dict[str, Any]
    feasibility_assessment: dict[str, Any]
    strategy: dict[str, Any]
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
