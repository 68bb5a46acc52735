"""Event channel — lifecycle events published by the orchestrators.

An ``EventSink`` receives ``(event, job_id, data)`` triples. Sinks are passed
explicitly to each orchestrator call; a run without a sink uses
``NullEventSink``. Emitting is fire-and-forget from the caller's point of
view: a failing sink is logged and never interrupts the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Protocol

from ideascope.models.event import PipelineEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Receiver of pipeline lifecycle events."""

    async def emit(self, event: str, job_id: str, data: dict[str, Any] | None = None) -> None: ...


class NullEventSink:
    """Discards every event."""

    async def emit(self, event: str, job_id: str, data: dict[str, Any] | None = None) -> None:
        return None


class LoggingEventSink:
    """Mirrors events into the log."""

    def __init__(self, level: int = logging.INFO, logger_name: str = "ideascope.events") -> None:
        self.level = level
        self._logger = logging.getLogger(logger_name)

    async def emit(self, event: str, job_id: str, data: dict[str, Any] | None = None) -> None:
        level = logging.WARNING if event.endswith(":error") else self.level
        self._logger.log(level, "%s job=%s %s", event, job_id, data or {})


class QueueEventSink:
    """Buffers events as ``PipelineEvent`` objects on an ``asyncio.Queue``.

    Used by ``AnalysisOrchestrator.stream`` to hand events to a consumer while
    the pipeline is still running.
    """

    def __init__(self, queue: asyncio.Queue[PipelineEvent] | None = None) -> None:
        self.queue: asyncio.Queue[PipelineEvent] = queue or asyncio.Queue()

    async def emit(self, event: str, job_id: str, data: dict[str, Any] | None = None) -> None:
        await self.queue.put(PipelineEvent(event=event, job_id=job_id, data=data or {}))


class FanOutEventSink:
    """Forwards every event to several sinks, isolating their failures."""

    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self.sinks = list(sinks)

    async def emit(self, event: str, job_id: str, data: dict[str, Any] | None = None) -> None:
        for sink in self.sinks:
            try:
                await sink.emit(event, job_id, data)
            except Exception:
                logger.warning("Event sink %s failed for %s", type(sink).__name__, event, exc_info=True)


async def safe_emit(sink: EventSink, event: str, job_id: str, data: dict[str, Any] | None = None) -> None:
    """Emit on *sink*, logging instead of raising if the sink fails."""
    try:
        await sink.emit(event, job_id, data or {})
    except Exception:
        logger.warning("Event sink %s failed for %s", type(sink).__name__, event, exc_info=True)
