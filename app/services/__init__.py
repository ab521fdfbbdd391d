"""Service layer exports."""

from .analysis_results import (
    AnalysisResultService,
    AnalysisView,
    JobAccessDeniedError,
    JobNotFoundError,
)
from .job_dispatcher import JobDispatcher
from .recommendation import RecommendationService, UnknownIngredientsError
from .result_projector import ResultProjector, StoredResultFormat

__all__ = [
    "AnalysisResultService",
    "AnalysisView",
    "JobAccessDeniedError",
    "JobDispatcher",
    "JobNotFoundError",
    "RecommendationService",
    "ResultProjector",
    "StoredResultFormat",
    "UnknownIngredientsError",
]
