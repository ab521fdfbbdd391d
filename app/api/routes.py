"""
FastAPI routes for image analysis jobs and recipe recommendations.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse

from app.clients import (
    PersistenceError,
    WorkerError,
    WorkerSpawnFailed,
    WorkerTimeout,
)
from app.core.config import AppSettings
from app.dependencies import (
    SettingsDependency,
    get_analysis_result_service,
    get_job_dispatcher,
    get_recommendation_service,
    get_upload_storage,
)
from app.schemas import (
    AnalysisResultData,
    AnalysisUploadData,
    ApiEnvelope,
    RecommendationRequest,
)
from app.services import (
    JobAccessDeniedError,
    JobNotFoundError,
    UnknownIngredientsError,
)

router = APIRouter()
logger = logging.getLogger(__name__)

# Application-level code for a finished-but-failed analysis; HTTP stays 200.
RESULT_CODE_ANALYSIS_FAILED = 603


def _envelope(
    status: HTTPStatus,
    message: str,
    *,
    data: Any = None,
    success: Optional[bool] = None,
    result_code: Optional[int] = None,
) -> JSONResponse:
    body = ApiEnvelope(
        success=status < HTTPStatus.BAD_REQUEST if success is None else success,
        result_code=int(status) if result_code is None else result_code,
        message=message,
        data=data,
    )
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"))


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post("/images/upload", status_code=HTTPStatus.CREATED)
async def upload_image(
    storage: Annotated[Any, Depends(get_upload_storage)],
    dispatcher: Annotated[Any, Depends(get_job_dispatcher)],
    settings: AppSettings = SettingsDependency,
    user_id: str = Query(..., description="User uploading the image."),
    file: Optional[UploadFile] = File(default=None),
) -> JSONResponse:
    """
    Store an image, create a pending analysis job and return without waiting.
    """
    if file is None:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="An image file is required.",
        )
    content_type = (file.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Only image uploads can be analysed.",
        )
    data = await file.read()
    if not data:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="The uploaded file is empty.",
        )
    if len(data) > settings.upload_max_bytes:
        raise HTTPException(
            status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
            detail=f"Images may be at most {settings.upload_max_bytes} bytes.",
        )

    try:
        input_ref = await asyncio.to_thread(
            storage.save, owner_id=user_id, filename=file.filename or "", data=data
        )
    except OSError as exc:
        logger.error("Could not store upload for user %s: %s", user_id, exc)
        return _envelope(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "The image could not be stored.",
        )

    try:
        job = await dispatcher.submit(owner_id=user_id, input_ref=input_ref)
    except PersistenceError as exc:
        logger.error("Could not create analysis job for user %s: %s", user_id, exc)
        try:
            await asyncio.to_thread(storage.release, input_ref)
        except OSError as release_exc:
            logger.error("Could not delete orphaned upload %s: %s", input_ref, release_exc)
        return _envelope(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "The analysis request could not be recorded.",
        )

    data_out = AnalysisUploadData(
        id=job.id,
        user_id=job.owner_id,
        status=job.status,
        image_url=job.input_ref,
        uploaded_at=job.created_at,
    )
    return _envelope(
        HTTPStatus.CREATED,
        "The image was uploaded and is waiting for analysis.",
        data=data_out.model_dump(mode="json"),
    )


@router.get("/images/analysis/{job_id}", status_code=HTTPStatus.OK)
async def get_analysis_result(
    job_id: str,
    results: Annotated[Any, Depends(get_analysis_result_service)],
    user_id: str = Query(..., description="User polling for the result."),
) -> JSONResponse:
    """Poll an analysis job: 202 while running, 200 once it has an outcome."""
    try:
        view = await results.get_result(job_id=job_id, requester_id=user_id)
    except JobNotFoundError:
        return _envelope(HTTPStatus.NOT_FOUND, "No analysis exists with that id.")
    except JobAccessDeniedError:
        return _envelope(
            HTTPStatus.FORBIDDEN, "You do not have access to this analysis."
        )
    except (PersistenceError, sqlite3.Error) as exc:
        logger.error("Could not read analysis job %s: %s", job_id, exc)
        return _envelope(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "The analysis result could not be loaded.",
        )

    job = view.job
    if view.in_progress:
        data = AnalysisResultData(id=job.id, status=job.status)
        return _envelope(
            HTTPStatus.ACCEPTED,
            "The image is still being analysed.",
            data=data.model_dump(mode="json", exclude_none=True),
        )

    if view.failed:
        data = AnalysisResultData(
            id=job.id,
            status=job.status,
            error_message=job.error_message,
            analyzed_at=job.resolved_at,
        )
        return _envelope(
            HTTPStatus.OK,
            "Image analysis failed. Please try again.",
            data=data.model_dump(mode="json"),
            success=False,
            result_code=RESULT_CODE_ANALYSIS_FAILED,
        )

    data = AnalysisResultData(
        id=job.id,
        status=job.status,
        identified_ingredients=view.ingredients,
        image_url=job.input_ref,
        analyzed_at=job.resolved_at,
    )
    return _envelope(
        HTTPStatus.OK,
        "The analysis is complete.",
        data=data.model_dump(mode="json", exclude={"error_message"}),
    )


@router.post("/recipes/recommend", status_code=HTTPStatus.OK)
async def recommend_recipes(
    payload: RecommendationRequest,
    recommender: Annotated[Any, Depends(get_recommendation_service)],
    user_id: str = Query(..., description="User asking for recommendations."),
) -> JSONResponse:
    """Run the recommendation worker and return recipes in its ranking order."""
    try:
        recipes = await recommender.recommend(user_id=user_id, request=payload)
    except UnknownIngredientsError as exc:
        return _envelope(HTTPStatus.BAD_REQUEST, str(exc))
    except WorkerTimeout as exc:
        logger.warning("Recommendation timed out for user %s: %s", user_id, exc)
        return _envelope(HTTPStatus.GATEWAY_TIMEOUT, str(exc))
    except WorkerSpawnFailed as exc:
        logger.error("Recommendation worker could not start: %s", exc)
        return _envelope(HTTPStatus.SERVICE_UNAVAILABLE, str(exc))
    except WorkerError as exc:
        logger.warning("Recommendation failed for user %s: %s", user_id, exc)
        return _envelope(HTTPStatus.BAD_GATEWAY, str(exc))

    message = (
        "Recommendations are ready." if recipes else "No recipes match the selected ingredients."
    )
    return _envelope(
        HTTPStatus.OK,
        message,
        data={"recommendations": [recipe.model_dump(mode="json") for recipe in recipes]},
    )


__all__ = ["RESULT_CODE_ANALYSIS_FAILED", "router"]
