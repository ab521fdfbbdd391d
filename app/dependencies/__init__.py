"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_analysis_result_service,
    get_ingredient_catalog,
    get_inventory_ledger,
    get_job_dispatcher,
    get_job_store,
    get_recipe_catalog,
    get_recommendation_service,
    get_result_projector,
    get_upload_storage,
    get_worker_invoker,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_analysis_result_service",
    "get_app_settings",
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
