"""Read side of image analysis jobs: ownership checks and result projection."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List

from app.clients.job_store import AnalysisJobStore
from app.schemas import AnalysisJob, JobStatus, ResolvedIngredient
from app.services.result_projector import ResultProjector


class JobNotFoundError(Exception):
    """Raised when no analysis job exists with the requested id."""


class JobAccessDeniedError(Exception):
    """Raised when a user asks for an analysis job they do not own."""


@dataclass(slots=True)
class AnalysisView:
    """What a poller is allowed to see of one job."""

    job: AnalysisJob
    ingredients: List[ResolvedIngredient] = field(default_factory=list)

    @property
    def in_progress(self) -> bool:
        return not self.job.status.is_terminal

    @property
    def failed(self) -> bool:
        return self.job.status is JobStatus.FAILED


class AnalysisResultService:
    def __init__(self, store: AnalysisJobStore, projector: ResultProjector) -> None:
        self._store = store
        self._projector = projector

    async def get_result(self, *, job_id: str, requester_id: str) -> AnalysisView:
        job = await asyncio.to_thread(self._store.get, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.owner_id != requester_id:
            raise JobAccessDeniedError(job_id)

        if job.status is not JobStatus.COMPLETED:
            return AnalysisView(job=job)

        ids = self._projector.normalize_stored(job.result)
        ingredients = await self._projector.resolve(ids)
        return AnalysisView(job=job, ingredients=ingredients)


__all__ = [
    "AnalysisResultService",
    "AnalysisView",
    "JobAccessDeniedError",
    "JobNotFoundError",
]
