"""
Fire-and-forget dispatch of image analysis jobs to the detection worker.

``submit`` writes a pending job and returns at once; a background task then
drives the job to ``completed`` or ``failed``. Worker failures never reach the
submitter; they are only visible through the job record.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from app.clients.job_store import AnalysisJobStore, PersistenceError
from app.clients.upload_storage import InputUnavailable, UploadStorage
from app.clients.worker_process import (
    ResponseUnparseable,
    WorkerError,
    WorkerInvoker,
    WorkerProfile,
    WorkerReportedFailure,
)
from app.schemas import AnalysisJob, DetectionResponse
from app.services.result_projector import ResultProjector

logger = logging.getLogger(__name__)

_DEFAULT_FAILURE_MESSAGE = "Image analysis failed."
_INTERRUPTED_MESSAGE = "Image analysis was interrupted before it finished. Please try again."


class JobDispatcher:
    """Create analysis jobs and run each one as an independent asyncio task."""

    def __init__(
        self,
        *,
        store: AnalysisJobStore,
        storage: UploadStorage,
        invoker: WorkerInvoker,
        projector: ResultProjector,
        profile: WorkerProfile,
    ) -> None:
        self._store = store
        self._storage = storage
        self._invoker = invoker
        self._projector = projector
        self._profile = profile
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def submit(self, *, owner_id: str, input_ref: str) -> AnalysisJob:
        """Persist a pending job and schedule its dispatch without awaiting it.

        Raises ``PersistenceError`` when the job row cannot be created; nothing
        is scheduled in that case.
        """
        job = await asyncio.to_thread(
            self._store.create, owner_id=owner_id, input_ref=input_ref
        )
        logger.info("Created analysis job %s", job.id, extra={"job_id": job.id})

        task = asyncio.create_task(self._dispatch(job), name=f"analysis-job-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def join(self) -> None:
        """Wait until every dispatch task started so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float) -> None:
        """Give in-flight jobs ``timeout`` seconds, then cancel the rest."""
        if not self._tasks:
            return
        pending = list(self._tasks)
        logger.info("Waiting for %d analysis job(s) before shutdown", len(pending))
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)

    async def _dispatch(self, job: AnalysisJob) -> None:
        result: Optional[list[int]] = None
        error_message: Optional[str] = _INTERRUPTED_MESSAGE
        try:
            await self._mark_processing(job)
            image_bytes = await asyncio.to_thread(self._storage.read_bytes, job.input_ref)
            logger.info(
                "Dispatching analysis job (%d bytes)",
                len(image_bytes),
                extra={"job_id": job.id},
            )
            document = await self._invoker.invoke(self._profile, image_bytes)
            result = self._project(document)
            error_message = None
        except (InputUnavailable, WorkerError) as exc:
            logger.warning(
                "Analysis job %s failed: %s (%s)",
                job.id,
                exc,
                type(exc).__name__,
                extra={"job_id": job.id},
            )
            error_message = str(exc) or _DEFAULT_FAILURE_MESSAGE
        except Exception:
            logger.exception("Unexpected failure in analysis job", extra={"job_id": job.id})
            error_message = _DEFAULT_FAILURE_MESSAGE
        finally:
            await self._commit(job, result=result, error_message=error_message)

    def _project(self, document: dict) -> list[int]:
        try:
            response = DetectionResponse.model_validate(document)
        except ValidationError as exc:
            raise ResponseUnparseable(
                "The detection worker response is missing required fields.",
                preview=str(document)[:500],
            ) from exc
        # Success needs both the flag and a detections list, even an empty one.
        if not response.success or response.detections is None:
            raise WorkerReportedFailure(response.message or _DEFAULT_FAILURE_MESSAGE)
        return self._projector.detection_ids(response.detections)

    async def _mark_processing(self, job: AnalysisJob) -> None:
        # Best effort: the terminal state matters, the intermediate marker does not.
        try:
            moved = await asyncio.to_thread(self._store.mark_processing, job.id)
        except PersistenceError as exc:
            logger.error(
                "Could not mark analysis job as processing: %s",
                exc,
                extra={"job_id": job.id},
            )
            return
        if not moved:
            logger.warning(
                "Analysis job was not pending when dispatch started",
                extra={"job_id": job.id},
            )

    async def _commit(
        self,
        job: AnalysisJob,
        *,
        result: Optional[list[int]],
        error_message: Optional[str],
    ) -> None:
        try:
            if error_message is None and result is not None:
                committed = await asyncio.to_thread(
                    self._store.mark_completed, job.id, result
                )
                if committed:
                    logger.info(
                        "Completed analysis job %s with %d ingredient(s)",
                        job.id,
                        len(result),
                        extra={"job_id": job.id},
                    )
            else:
                committed = await asyncio.to_thread(
                    self._store.mark_failed, job.id, error_message or _DEFAULT_FAILURE_MESSAGE
                )
        except PersistenceError:
            logger.exception(
                "Could not record the final state of analysis job %s",
                job.id,
                extra={"job_id": job.id},
            )
        else:
            if not committed:
                logger.warning(
                    "Analysis job already reached a terminal state; result discarded",
                    extra={"job_id": job.id},
                )
        if error_message is not None:
            await self._release_input(job)

    async def _release_input(self, job: AnalysisJob) -> None:
        try:
            await asyncio.to_thread(self._storage.release, job.input_ref)
        except OSError as exc:
            logger.error(
                "Could not delete input after failed analysis: %s",
                exc,
                extra={"job_id": job.id},
            )


__all__ = ["JobDispatcher"]
