try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import sqlite3
from http import HTTPStatus
from pathlib import Path

import httpx
import pytest

from app.clients.catalog import IngredientCatalog
from app.clients.job_store import AnalysisJobStore, PersistenceError
from app.clients.upload_storage import UploadStorage
from app.clients.worker_process import InputEncoding, WorkerInvoker
from app.core.config import get_settings
from app.dependencies import (
    get_analysis_result_service,
    get_app_settings,
    get_job_dispatcher,
    get_upload_storage,
)
from app.main import app
from app.services.analysis_results import AnalysisResultService
from app.services.job_dispatcher import JobDispatcher
from app.services.result_projector import ResultProjector

DETECTIONS_WORKER = """
    import json, sys
    sys.stdin.buffer.read()
    print(json.dumps({
        "success": True,
        "detections": [
            {"classId": 17, "label": "eggplant"},
            {"classId": 49, "label": "onion"},
            {"classId": 17, "label": "eggplant"},
        ],
    }))
"""


class Harness:
    def __init__(self, tmp_path: Path, make_worker) -> None:
        db_path = tmp_path / "app.db"
        self.store = AnalysisJobStore(db_path)
        self.storage = UploadStorage(tmp_path / "uploads")
        self.catalog = IngredientCatalog(db_path)
        self.catalog.add(17, "가지")
        self.catalog.add(49, "양파")
        self.projector = ResultProjector(self.catalog)
        self.dispatcher = JobDispatcher(
            store=self.store,
            storage=self.storage,
            invoker=WorkerInvoker(max_concurrency=2),
            projector=self.projector,
            profile=make_worker(
                DETECTIONS_WORKER, name="detection", encoding=InputEncoding.BYTES
            ),
        )
        self.db_path = db_path


@pytest.fixture
def harness(tmp_path: Path, make_worker):
    harness = Harness(tmp_path, make_worker)
    app.dependency_overrides.update(
        {
            get_upload_storage: lambda: harness.storage,
            get_job_dispatcher: lambda: harness.dispatcher,
            get_analysis_result_service: lambda: AnalysisResultService(
                harness.store, harness.projector
            ),
        }
    )
    yield harness
    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


@pytest.mark.anyio
async def test_health() -> None:
    async with _client() as client:
        response = await client.get("/api/health")
    assert response.status_code == HTTPStatus.OK
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_upload_then_poll_returns_resolved_ingredients(harness: Harness) -> None:
    async with _client() as client:
        upload = await client.post(
            "/api/images/upload",
            params={"user_id": "user-1"},
            files={"file": ("fridge.jpg", b"\xff\xd8\xffjpeg-bytes", "image/jpeg")},
        )
        assert upload.status_code == HTTPStatus.CREATED
        body = upload.json()
        assert body["success"] is True
        assert body["result_code"] == 201
        job_id = body["data"]["id"]
        assert body["data"]["user_id"] == "user-1"
        assert body["data"]["status"] == "pending"
        assert Path(body["data"]["image_url"]).suffix == ".jpg"

        await harness.dispatcher.join()

        poll = await client.get(
            f"/api/images/analysis/{job_id}", params={"user_id": "user-1"}
        )

    assert poll.status_code == HTTPStatus.OK
    payload = poll.json()
    assert payload["success"] is True
    assert payload["result_code"] == 200
    assert payload["data"]["status"] == "completed"
    assert payload["data"]["identified_ingredients"] == [
        {"id": 17, "display_name": "가지"},
        {"id": 49, "display_name": "양파"},
    ]
    assert payload["data"]["analyzed_at"]


@pytest.mark.anyio
async def test_poll_in_progress_job_returns_accepted(harness: Harness) -> None:
    job = harness.store.create(owner_id="user-1", input_ref="ref")

    async with _client() as client:
        response = await client.get(
            f"/api/images/analysis/{job.id}", params={"user_id": "user-1"}
        )

    assert response.status_code == HTTPStatus.ACCEPTED
    body = response.json()
    assert body["result_code"] == 202
    assert body["data"] == {"id": job.id, "status": "pending"}


@pytest.mark.anyio
async def test_poll_failed_job_returns_ok_with_failure_code(harness: Harness) -> None:
    job = harness.store.create(owner_id="user-1", input_ref="ref")
    harness.store.mark_failed(job.id, "The detection worker timed out after 30 seconds.")

    async with _client() as client:
        response = await client.get(
            f"/api/images/analysis/{job.id}", params={"user_id": "user-1"}
        )

    assert response.status_code == HTTPStatus.OK
    body = response.json()
    assert body["success"] is False
    assert body["result_code"] == 603
    assert body["data"]["status"] == "failed"
    assert body["data"]["error_message"] == "The detection worker timed out after 30 seconds."


@pytest.mark.anyio
async def test_poll_legacy_detection_result_is_normalized(harness: Harness) -> None:
    job = harness.store.create(owner_id="user-1", input_ref="ref")
    with sqlite3.connect(harness.db_path) as conn:
        conn.execute(
            "UPDATE analysis_jobs SET status = 'completed', result = ? WHERE id = ?",
            ('[{"classId": 49, "label": "onion"}, {"classId": 49}]', job.id),
        )

    async with _client() as client:
        response = await client.get(
            f"/api/images/analysis/{job.id}", params={"user_id": "user-1"}
        )

    assert response.status_code == HTTPStatus.OK
    assert response.json()["data"]["identified_ingredients"] == [
        {"id": 49, "display_name": "양파"}
    ]


@pytest.mark.anyio
async def test_poll_rejects_unknown_and_foreign_jobs(harness: Harness) -> None:
    job = harness.store.create(owner_id="owner", input_ref="ref")
    harness.store.mark_completed(job.id, [17])

    async with _client() as client:
        missing = await client.get(
            "/api/images/analysis/does-not-exist", params={"user_id": "owner"}
        )
        foreign = await client.get(
            f"/api/images/analysis/{job.id}", params={"user_id": "someone-else"}
        )

    assert missing.status_code == HTTPStatus.NOT_FOUND
    assert missing.json()["result_code"] == 404
    assert foreign.status_code == HTTPStatus.FORBIDDEN
    assert foreign.json()["data"] is None


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("files", "expected_status"),
    [
        (None, HTTPStatus.BAD_REQUEST),
        ({"file": ("notes.txt", b"hello", "text/plain")}, HTTPStatus.BAD_REQUEST),
        ({"file": ("empty.png", b"", "image/png")}, HTTPStatus.BAD_REQUEST),
    ],
)
async def test_upload_rejects_invalid_files(
    harness: Harness, files, expected_status
) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/images/upload", params={"user_id": "user-1"}, files=files
        )

    assert response.status_code == expected_status
    assert harness.store.list_recent() == []


@pytest.mark.anyio
async def test_upload_rejects_oversized_files(harness: Harness) -> None:
    small_limit = get_settings().model_copy(update={"upload_max_bytes": 4})
    app.dependency_overrides[get_app_settings] = lambda: small_limit

    async with _client() as client:
        response = await client.post(
            "/api/images/upload",
            params={"user_id": "user-1"},
            files={"file": ("big.png", b"0123456789", "image/png")},
        )

    assert response.status_code == HTTPStatus.REQUEST_ENTITY_TOO_LARGE


@pytest.mark.anyio
async def test_upload_releases_file_when_job_cannot_be_recorded(
    harness: Harness, tmp_path: Path
) -> None:
    class BrokenDispatcher:
        async def submit(self, *, owner_id, input_ref):
            raise PersistenceError("database is locked")

    app.dependency_overrides[get_job_dispatcher] = lambda: BrokenDispatcher()

    async with _client() as client:
        response = await client.post(
            "/api/images/upload",
            params={"user_id": "user-1"},
            files={"file": ("a.png", b"png-bytes", "image/png")},
        )

    assert response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response.json()["success"] is False
    assert list((tmp_path / "uploads").rglob("*.png")) == []


class BrokenLookupStore(AnalysisJobStore):
    def get(self, job_id):
        raise PersistenceError("database is locked")


class BrokenCatalog(IngredientCatalog):
    def resolve(self, ids):
        raise sqlite3.OperationalError("no such table: ingredient_master")


@pytest.mark.anyio
@pytest.mark.parametrize("broken", ["store", "catalog"])
async def test_poll_storage_failure_returns_error_envelope(
    harness: Harness, broken: str
) -> None:
    job = harness.store.create(owner_id="user-1", input_ref="ref")
    harness.store.mark_completed(job.id, [17])
    if broken == "store":
        service = AnalysisResultService(BrokenLookupStore(harness.db_path), harness.projector)
    else:
        service = AnalysisResultService(
            harness.store, ResultProjector(BrokenCatalog(harness.db_path))
        )
    app.dependency_overrides[get_analysis_result_service] = lambda: service

    async with _client() as client:
        response = await client.get(
            f"/api/images/analysis/{job.id}", params={"user_id": "user-1"}
        )

    assert response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    body = response.json()
    assert body["success"] is False
    assert body["result_code"] == 500
    assert body["message"] == "The analysis result could not be loaded."
    assert body["data"] is None
