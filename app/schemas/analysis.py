"""
Pydantic models for image analysis jobs and the detection worker protocol.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    """Lifecycle of an analysis job; ``completed`` and ``failed`` are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class AnalysisJob(BaseModel):
    """Persisted record tracking one image analysis request."""

    id: str
    owner_id: str
    input_ref: str = Field(..., description="Server-side location of the uploaded image.")
    status: JobStatus
    result: Optional[Any] = Field(
        None,
        description=(
            "Stored worker result. Current rows hold a list of ingredient ids; "
            "older rows may hold full detection objects."
        ),
    )
    error_message: Optional[str] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None


class Detection(BaseModel):
    """One object found by the detection worker."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    class_id: int = Field(..., alias="classId")
    label: Optional[str] = None
    bbox: Optional[Any] = None
    confidence: Optional[float] = None


class DetectionResponse(BaseModel):
    """Document printed on stdout by the detection worker."""

    model_config = ConfigDict(extra="allow")

    success: bool
    message: Optional[str] = None
    result_code: Optional[int] = None
    detections: Optional[List[Detection]] = None


class ResolvedIngredient(BaseModel):
    """Ingredient id paired with the name shown to users."""

    id: int
    display_name: str


class AnalysisUploadData(BaseModel):
    id: str
    user_id: str
    status: JobStatus
    image_url: str
    uploaded_at: datetime


class AnalysisResultData(BaseModel):
    id: str
    status: JobStatus
    identified_ingredients: Optional[List[ResolvedIngredient]] = None
    error_message: Optional[str] = None
    image_url: Optional[str] = None
    analyzed_at: Optional[datetime] = None


class ApiEnvelope(BaseModel):
    """Common response wrapper used by the analysis and recipe routes."""

    success: bool
    result_code: int
    message: str
    data: Optional[Any] = None


__all__ = [
    "AnalysisJob",
    "AnalysisResultData",
    "AnalysisUploadData",
    "ApiEnvelope",
    "Detection",
    "DetectionResponse",
    "JobStatus",
    "ResolvedIngredient",
]
