"""SQLite-backed persistence for image analysis jobs."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence
from uuid import uuid4

from app.schemas import AnalysisJob, JobStatus

_OPEN_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)


class PersistenceError(RuntimeError):
    """Raised when the job table cannot be read or written."""


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class AnalysisJobStore:
    """Single-row create/read/transition operations over the ``analysis_jobs`` table.

    Transitions only move forward. Each ``mark_*`` call returns ``False`` instead
    of overwriting when the row is missing or already past the required state.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS analysis_jobs (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    input_ref TEXT NOT NULL,
                    status TEXT NOT NULL,
                    result TEXT,
                    error_message TEXT,
                    created_at TEXT NOT NULL,
                    resolved_at TEXT
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_analysis_jobs_owner "
                "ON analysis_jobs (owner_id)"
            )

    def create(self, *, owner_id: str, input_ref: str) -> AnalysisJob:
        job_id = uuid4().hex
        created_at = _utcnow()
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO analysis_jobs (id, owner_id, input_ref, status, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (job_id, owner_id, input_ref, JobStatus.PENDING.value, created_at),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not create analysis job: {exc}") from exc
        return AnalysisJob(
            id=job_id,
            owner_id=owner_id,
            input_ref=input_ref,
            status=JobStatus.PENDING,
            created_at=created_at,
        )

    def get(self, job_id: str) -> Optional[AnalysisJob]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM analysis_jobs WHERE id = ?", (job_id,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not read analysis job {job_id}: {exc}") from exc
        if not row:
            return None
        return _row_to_job(row)

    def mark_processing(self, job_id: str) -> bool:
        return self._transition(
            job_id,
            "status = ?",
            (JobStatus.PROCESSING.value,),
            allowed_from=(JobStatus.PENDING.value,),
        )

    def mark_completed(self, job_id: str, result: Sequence[Any]) -> bool:
        return self._transition(
            job_id,
            "status = ?, result = ?, error_message = NULL, resolved_at = ?",
            (JobStatus.COMPLETED.value, json.dumps(list(result)), _utcnow()),
            allowed_from=_OPEN_STATUSES,
        )

    def mark_failed(self, job_id: str, message: str) -> bool:
        return self._transition(
            job_id,
            "status = ?, result = NULL, error_message = ?, resolved_at = ?",
            (JobStatus.FAILED.value, message, _utcnow()),
            allowed_from=_OPEN_STATUSES,
        )

    def list_recent(self, limit: int = 50) -> list[AnalysisJob]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM analysis_jobs ORDER BY created_at DESC LIMIT ?",
                    (limit,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not list analysis jobs: {exc}") from exc
        return [_row_to_job(row) for row in rows]

    def _transition(
        self,
        job_id: str,
        assignments: str,
        values: tuple[Any, ...],
        *,
        allowed_from: tuple[str, ...],
    ) -> bool:
        # The status guard lives in the WHERE clause so the check and the write
        # happen in one statement.
        placeholders = ", ".join("?" for _ in allowed_from)
        sql = (
            f"UPDATE analysis_jobs SET {assignments} "
            f"WHERE id = ? AND status IN ({placeholders})"
        )
        try:
            with self._connect() as conn:
                cursor = conn.execute(sql, (*values, job_id, *allowed_from))
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Could not update analysis job {job_id}: {exc}"
            ) from exc
        return cursor.rowcount == 1


def _decode_result(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _row_to_job(row: sqlite3.Row) -> AnalysisJob:
    return AnalysisJob(
        id=row["id"],
        owner_id=row["owner_id"],
        input_ref=row["input_ref"],
        status=JobStatus(row["status"]),
        result=_decode_result(row["result"]),
        error_message=row["error_message"],
        created_at=row["created_at"],
        resolved_at=row["resolved_at"],
    )


__all__ = ["AnalysisJobStore", "PersistenceError"]
