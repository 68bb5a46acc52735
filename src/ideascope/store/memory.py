"""Document store — persistence for ResearchPacks and JobStatus records.

``DocumentStore`` is the contract the orchestrators depend on;
``InMemoryDocumentStore`` is the process-local implementation used by the CLI
and the tests.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from ideascope.models.research import ResearchPack
from ideascope.models.result import JobStatus

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Storage contract for research packs and job status."""

    async def save_research_pack(self, pack: ResearchPack) -> ResearchPack:
        """Insert or replace the pack for ``(pack.idea_id, pack.research_hash)``."""
        ...

    async def get_research_pack(self, pack_id: str) -> ResearchPack | None: ...

    async def find_research_packs(self, **equals: Any) -> list[ResearchPack]: ...

    async def save_job_status(self, job_id: str, update: dict[str, Any]) -> JobStatus:
        """Merge *update* into the job's status (dict fields merged key-wise)."""
        ...

    async def get_job_status(self, job_id: str) -> JobStatus | None: ...


class InMemoryDocumentStore:
    """Dictionary-backed ``DocumentStore``."""

    def __init__(self) -> None:
        self._packs: dict[str, ResearchPack] = {}
        self._jobs: dict[str, JobStatus] = {}

    # ── Research packs ───────────────────────────────────────────────────

    async def save_research_pack(self, pack: ResearchPack) -> ResearchPack:
        """Upsert *pack* keyed on ``(idea_id, research_hash)``.

        A pack replacing an earlier one for the same key keeps the earlier id,
        so references held by job records stay valid.
        """
        existing = next(
            (
                p
                for p in self._packs.values()
                if p.idea_id == pack.idea_id and p.research_hash == pack.research_hash
            ),
            None,
        )
        if existing is not None:
            pack = pack.model_copy(update={"id": existing.id})
            logger.debug("Replacing research pack %s for idea %s", existing.id, pack.idea_id)
        self._packs[pack.id] = pack
        return pack

    async def get_research_pack(self, pack_id: str) -> ResearchPack | None:
        return self._packs.get(pack_id)

    async def find_research_packs(self, **equals: Any) -> list[ResearchPack]:
        """Return packs whose attributes equal every given keyword.

        Example:
            >>> await store.find_research_packs(idea_id="idea_1", research_hash="ab12...")
        """
        return [
            pack
            for pack in self._packs.values()
            if all(getattr(pack, field, None) == value for field, value in equals.items())
        ]

    # ── Job status ───────────────────────────────────────────────────────

    async def save_job_status(self, job_id: str, update: dict[str, Any]) -> JobStatus:
        current = self._jobs.get(job_id)
        data = current.model_dump() if current is not None else {"job_id": job_id}

        for field, value in update.items():
            if isinstance(value, dict) and isinstance(data.get(field), dict):
                data[field] = {**data[field], **value}
            else:
                data[field] = value
        data["updated_at"] = datetime.now(UTC)

        status = JobStatus.model_validate(data)
        self._jobs[job_id] = status
        return status

    async def get_job_status(self, job_id: str) -> JobStatus | None:
        return self._jobs.get(job_id)
