"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import (
    AnalysisJobStore,
    IngredientCatalog,
    InventoryLedger,
    RecipeCatalog,
    UploadStorage,
    WorkerInvoker,
)
from app.core.config import get_settings
from app.services import (
    AnalysisResultService,
    JobDispatcher,
    RecommendationService,
    ResultProjector,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_job_store() -> AnalysisJobStore:
    """Provide the shared analysis job store."""
    return AnalysisJobStore(_settings().database_path)


@lru_cache()
def get_upload_storage() -> UploadStorage:
    """Provide the uploaded image storage."""
    return UploadStorage(_settings().upload_dir)


@lru_cache()
def get_ingredient_catalog() -> IngredientCatalog:
    """Provide the ingredient master catalog."""
    return IngredientCatalog(_settings().database_path)


@lru_cache()
def get_recipe_catalog() -> RecipeCatalog:
    return RecipeCatalog(_settings().database_path)


@lru_cache()
def get_inventory_ledger() -> InventoryLedger:
    return InventoryLedger(_settings().database_path)


@lru_cache()
def get_worker_invoker() -> WorkerInvoker:
    """Provide the process-wide worker invoker so every worker shares one limit."""
    worker = _settings().worker
    return WorkerInvoker(
        max_concurrency=worker.max_concurrency or None,
        kill_grace_seconds=worker.kill_grace_seconds,
    )


@lru_cache()
def get_result_projector() -> ResultProjector:
    return ResultProjector(get_ingredient_catalog())


@lru_cache()
def get_job_dispatcher() -> JobDispatcher:
    """Provide the dispatcher that owns every in-flight analysis task."""
    return JobDispatcher(
        store=get_job_store(),
        storage=get_upload_storage(),
        invoker=get_worker_invoker(),
        projector=get_result_projector(),
        profile=_settings().worker.detection_profile(),
    )


def get_analysis_result_service() -> AnalysisResultService:
    """Build the read side of analysis jobs."""
    return AnalysisResultService(get_job_store(), get_result_projector())


def get_recommendation_service() -> RecommendationService:
    """Build a recommendation service using the shared invoker."""
    settings = _settings()
    return RecommendationService(
        invoker=get_worker_invoker(),
        profile=settings.worker.recommendation_profile(),
        projector=get_result_projector(),
        ingredients=get_ingredient_catalog(),
        recipes=get_recipe_catalog(),
        inventory=get_inventory_ledger(),
        candidate_limit=settings.recommendation_candidate_limit,
    )


__all__ = [
    "get_analysis_result_service",
    "get_ingredient_catalog",
    "get_inventory_ledger",
    "get_job_dispatcher",
    "get_job_store",
    "get_recipe_catalog",
    "get_recommendation_service",
    "get_result_projector",
    "get_upload_storage",
    "get_worker_invoker",
]
