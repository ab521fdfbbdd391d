"""Public schema exports."""

from .analysis import (
    AnalysisJob,
    AnalysisResultData,
    AnalysisUploadData,
    ApiEnvelope,
    Detection,
    DetectionResponse,
    JobStatus,
    ResolvedIngredient,
)
from .recommendation import (
    DEFAULT_QUERY_TEXT,
    RecipeCandidate,
    RecipeSummary,
    RecommendationQuery,
    RecommendationRequest,
    RecommendationResponse,
)

__all__ = [
    "AnalysisJob",
    "AnalysisResultData",
    "AnalysisUploadData",
    "ApiEnvelope",
    "DEFAULT_QUERY_TEXT",
    "Detection",
    "DetectionResponse",
    "JobStatus",
    "RecipeCandidate",
    "RecipeSummary",
    "RecommendationQuery",
    "RecommendationRequest",
    "RecommendationResponse",
    "ResolvedIngredient",
]
