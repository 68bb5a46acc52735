"""IdeaScope Engine — Analysis orchestrator for the full validation pipeline.

The orchestrator drives one job through a fixed state machine::

    research ──▶ parallel_analysis ──▶ strategy ──▶ complete
        │               │                  │
        └───────────────┴──────────────────┴──▶ failed

1. **research**: build (or reuse) the ResearchPack for the idea
2. **parallel_analysis**: market, sizing, competitor and feasibility nodes run
   concurrently; the phase ends only when all four have settled
3. **strategy**: the synthesis node runs on the four outputs
4. **complete**: the final result is assembled and stored on the job status

Each node call is wrapped in a cache-or-execute step keyed by
``node:{idea_id}:{node_name}:{research_hash}``; only validated outputs are
cached, so a failed run can be resumed cheaply by running it again.

Supports two output modes:
  - **Complete** (``run``) — Returns a single ``AnalysisResult``.
  - **Streaming** (``stream``) — Yields ``PipelineEvent`` objects while the
    pipeline runs.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import ValidationError

from ideascope.cache.manager import CacheManager, node_cache_key
from ideascope.core.errors import PipelineError
from ideascope.core.nodes import AnalysisNode, StrategyNode
from ideascope.core.research import ResearchOrchestrator
from ideascope.models.event import PipelineEvent
from ideascope.models.idea import NormalizedIdea
from ideascope.models.research import ResearchPack
from ideascope.models.result import AnalysisMetadata, AnalysisResult, JobState, NodeResult
from ideascope.observability.events import EventSink, FanOutEventSink, NullEventSink, QueueEventSink, safe_emit
from ideascope.observability.logging import job_context
from ideascope.store.memory import DocumentStore

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Pipeline phases."""

    RESEARCH = "research"
    PARALLEL_ANALYSIS = "parallel_analysis"
    STRATEGY = "strategy"
    COMPLETE = "complete"
    FAILED = "failed"


PHASE_PROGRESS = {
    Phase.RESEARCH: 10,
    Phase.PARALLEL_ANALYSIS: 30,
    Phase.STRATEGY: 80,
    Phase.COMPLETE: 100,
}

NODE_PROGRESS_STEP = 10

# Analysis node name → AnalysisResult field
RESULT_FIELDS = {
    "market_analyst": "market_analysis",
    "tam_sam_estimator": "tam_sam_estimate",
    "competitor_scanner": "competitor_analysis",
    "feasibility_evaluator": "feasibility_assessment",
}


class AnalysisOrchestrator:
    """Run research, parallel analysis and strategy synthesis for one idea.

    Args:
        research: Research orchestrator producing the ResearchPack.
        cache: Cache for node outputs.
        store: Document store holding the job status.
        nodes: The four analysis nodes (names must match ``RESULT_FIELDS``).
        strategy: The strategy synthesis node.
        node_ttl: Lifetime of cached node outputs in seconds.
    """

    def __init__(
        self,
        research: ResearchOrchestrator,
        cache: CacheManager,
        store: DocumentStore,
        nodes: Sequence[AnalysisNode],
        strategy: StrategyNode,
        *,
        node_ttl: int = 259_200,
    ) -> None:
        missing = set(RESULT_FIELDS) - {node.name for node in nodes}
        if missing:
            raise ValueError(f"Missing analysis nodes: {sorted(missing)}")
        self.research = research
        self.cache = cache
        self.store = store
        self.nodes = list(nodes)
        self.strategy = strategy
        self.node_ttl = node_ttl

    # ═══════════════════════════════════════════════════════════════════════
    # Complete mode
    # ═══════════════════════════════════════════════════════════════════════

    async def run(
        self,
        idea: NormalizedIdea,
        idea_id: str,
        *,
        job_id: str | None = None,
        events: EventSink | None = None,
    ) -> AnalysisResult:
        """Run the full pipeline for *idea*.

        Args:
            idea: The normalized idea.
            idea_id: Stable idea identifier.
            job_id: Job identifier (generated when omitted).
            events: Event sink for ``research:*``, ``orchestrator:*`` and ``node:*`` events.

        Returns:
            The assembled AnalysisResult.

        Raises:
            PipelineError: If any phase fails. The job status is marked
                ``failed`` with the phase and node before raising.
        """
        job_id = job_id or f"job_{uuid.uuid4().hex[:12]}"
        events = events or NullEventSink()

        with job_context(job_id=job_id, idea_id=idea_id):
            return await self._run(idea, idea_id, job_id, events)

    async def _run(self, idea: NormalizedIdea, idea_id: str, job_id: str, events: EventSink) -> AnalysisResult:
        start = time.monotonic()
        phase = Phase.RESEARCH
        await self.store.save_job_status(
            job_id,
            {"idea_id": idea_id, "status": JobState.PROCESSING, "message": "Analysis started"},
        )

        try:
            # ── Phase 1: Research ──
            await self._enter_phase(phase, job_id, events)
            try:
                pack = await self.research.run(idea, idea_id, job_id=job_id, events=events)
            except Exception as e:
                raise PipelineError(phase.value, e) from e

            # ── Phase 2: Parallel analysis ──
            phase = Phase.PARALLEL_ANALYSIS
            await self._enter_phase(phase, job_id, events)
            analyses = await self._run_parallel(pack, idea, idea_id, job_id, events)

            # ── Phase 3: Strategy synthesis ──
            phase = Phase.STRATEGY
            await self._enter_phase(phase, job_id, events)
            market, tam_sam, competitor, feasibility = (
                analyses[name].data or {} for name in RESULT_FIELDS
            )
            try:
                strategy = await self._cached_or_execute(
                    self.strategy,
                    idea_id,
                    pack.research_hash,
                    job_id,
                    events,
                    lambda: self.strategy.synthesize(market, tam_sam, competitor, feasibility, idea),
                )
            except Exception as e:
                raise PipelineError(phase.value, e, node_name=self.strategy.name) from e

            # ── Phase 4: Complete ──
            results = {**analyses, self.strategy.name: strategy}
            result = AnalysisResult(
                job_id=job_id,
                idea_id=idea_id,
                research_pack_id=pack.id,
                research_hash=pack.research_hash,
                strategy=strategy.data or {},
                metadata=AnalysisMetadata(
                    total_duration_ms=int((time.monotonic() - start) * 1000),
                    timings={name: r.timing_ms for name, r in results.items()},
                    attempts={name: r.attempts for name, r in results.items()},
                    cached={name: r.cached for name, r in results.items()},
                ),
                **{field: analyses[name].data or {} for name, field in RESULT_FIELDS.items()},
            )
        except PipelineError as e:
            await self._fail(e, job_id, events)
            raise
        except Exception as e:
            error = PipelineError(phase.value, e)
            await self._fail(error, job_id, events)
            raise error from e
        except asyncio.CancelledError:
            await self._fail(PipelineError(phase.value, asyncio.CancelledError("Analysis cancelled")), job_id, events)
            raise

        await self.store.save_job_status(
            job_id,
            {
                "status": JobState.COMPLETED,
                "step": Phase.COMPLETE.value,
                "progress": PHASE_PROGRESS[Phase.COMPLETE],
                "message": "Analysis complete",
                "result": result.model_dump(mode="json"),
            },
        )
        await safe_emit(
            events,
            "orchestrator:complete",
            job_id,
            {
                "research_pack_id": pack.id,
                "total_duration_ms": result.metadata.total_duration_ms,
                "cached": result.metadata.cached,
            },
        )
        logger.info("Analysis complete for idea %s in %dms", idea_id, result.metadata.total_duration_ms)
        return result

    async def _enter_phase(self, phase: Phase, job_id: str, events: EventSink) -> None:
        progress = PHASE_PROGRESS[phase]
        logger.info("Entering phase %s", phase.value)
        await self.store.save_job_status(
            job_id,
            {"step": phase.value, "progress": progress, "message": f"Phase: {phase.value}"},
        )
        await safe_emit(events, "orchestrator:phase", job_id, {"phase": phase.value, "progress": progress})

    async def _fail(self, error: PipelineError, job_id: str, events: EventSink) -> None:
        logger.error("Pipeline failed: %s", error)
        await self.store.save_job_status(
            job_id,
            {
                "status": JobState.FAILED,
                "step": Phase.FAILED.value,
                "message": str(error),
                "error": str(error.cause),
                "failed_phase": error.phase,
                "failed_node": error.node_name,
            },
        )
        await safe_emit(
            events,
            "orchestrator:error",
            job_id,
            {"phase": error.phase, "node": error.node_name, "error": str(error.cause)},
        )

    # ── Parallel analysis ────────────────────────────────────────────────

    async def _run_parallel(
        self,
        pack: ResearchPack,
        idea: NormalizedIdea,
        idea_id: str,
        job_id: str,
        events: EventSink,
    ) -> dict[str, NodeResult]:
        """Run every analysis node concurrently and wait for all of them to settle.

        Raises:
            PipelineError: For the first failed node (in node order) once all have settled.
        """
        settled = 0

        async def run_node(node: AnalysisNode) -> NodeResult:
            nonlocal settled
            result = await self._cached_or_execute(
                node,
                idea_id,
                pack.research_hash,
                job_id,
                events,
                lambda: node.run(pack, idea),
            )
            settled += 1
            await self.store.save_job_status(
                job_id,
                {"progress": PHASE_PROGRESS[Phase.PARALLEL_ANALYSIS] + settled * NODE_PROGRESS_STEP},
            )
            return result

        outcomes = await asyncio.gather(*(run_node(node) for node in self.nodes), return_exceptions=True)

        results: dict[str, NodeResult] = {}
        for node, outcome in zip(self.nodes, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                raise PipelineError(Phase.PARALLEL_ANALYSIS.value, outcome, node_name=node.name) from outcome
            results[node.name] = outcome
        return results

    # ── Node cache ───────────────────────────────────────────────────────

    async def _cached_or_execute(
        self,
        node: AnalysisNode,
        idea_id: str,
        research_hash: str,
        job_id: str,
        events: EventSink,
        execute: Callable[[], Awaitable[NodeResult]],
    ) -> NodeResult:
        key = node_cache_key(idea_id, node.name, research_hash)
        cached = await self._load_node_output(node, key)

        if cached is not None:
            await safe_emit(events, "node:cache:hit", job_id, {"node": node.name})
            result = NodeResult(node=node.name, success=True, data=cached, cached=True)
        else:
            await safe_emit(events, "node:cache:miss", job_id, {"node": node.name})
            await safe_emit(events, "node:start", job_id, {"node": node.name})
            try:
                result = await execute()
            except Exception as e:
                await safe_emit(events, "node:error", job_id, {"node": node.name, "error": str(e)})
                raise

            await self.cache.set(
                key,
                {"version": node.version, "data": result.data, "created_at": datetime.now(UTC).isoformat()},
                ttl=self.node_ttl,
            )
            await safe_emit(
                events,
                "node:end",
                job_id,
                {
                    "node": node.name,
                    "duration_ms": result.timing_ms,
                    "attempts": result.attempts,
                    "confidence": result.confidence,
                },
            )

        await self.store.save_job_status(
            job_id,
            {"node_timings": {node.name: result.timing_ms}, "node_attempts": {node.name: result.attempts}},
        )
        return result

    async def _load_node_output(self, node: AnalysisNode, key: str) -> dict[str, Any] | None:
        entry = await self.cache.get(key)
        if not isinstance(entry, dict):
            return None
        if entry.get("version") != node.version:
            logger.info("Ignoring cached %s output from version %s", node.name, entry.get("version"))
            return None
        try:
            return node.output_model.model_validate(entry.get("data")).model_dump(mode="json")
        except ValidationError:
            logger.warning("Ignoring cached %s output that no longer validates", node.name)
            return None

    # ═══════════════════════════════════════════════════════════════════════
    # Streaming mode
    # ═══════════════════════════════════════════════════════════════════════

    async def stream(
        self,
        idea: NormalizedIdea,
        idea_id: str,
        *,
        job_id: str | None = None,
        events: EventSink | None = None,
    ) -> AsyncIterator[PipelineEvent]:
        """Run the pipeline and yield its events as they are emitted.

        The stream ends after ``orchestrator:complete`` or ``orchestrator:error``.
        Closing the iterator early cancels the run and marks the job failed.

        Args:
            idea: The normalized idea.
            idea_id: Stable idea identifier.
            job_id: Job identifier (generated when omitted).
            events: Additional sink that receives every event as well.

        Yields:
            PipelineEvent instances.
        """
        job_id = job_id or f"job_{uuid.uuid4().hex[:12]}"
        queue_sink = QueueEventSink()
        sink: EventSink = FanOutEventSink([queue_sink, events]) if events is not None else queue_sink

        task = asyncio.ensure_future(self.run(idea, idea_id, job_id=job_id, events=sink))
        try:
            while True:
                getter = asyncio.ensure_future(queue_sink.queue.get())
                done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if getter not in done:
                    getter.cancel()
                    break
                event = getter.result()
                yield event
                if event.terminal:
                    break

            # Events emitted right before the run finished
            while not queue_sink.queue.empty():
                yield queue_sink.queue.get_nowait()
        finally:
            if not task.done():
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)
