"""Expose constructed client wrappers."""

from .catalog import IngredientCatalog, InventoryLedger, RecipeCatalog
from .job_store import AnalysisJobStore, PersistenceError
from .upload_storage import InputUnavailable, UploadStorage
from .worker_process import (
    InputEncoding,
    ResponseUnparseable,
    WorkerError,
    WorkerExecutionFailed,
    WorkerInvoker,
    WorkerOutcome,
    WorkerProfile,
    WorkerReportedFailure,
    WorkerSpawnFailed,
    WorkerTimeout,
)

__all__ = [
    "AnalysisJobStore",
    "IngredientCatalog",
    "InputEncoding",
    "InputUnavailable",
    "InventoryLedger",
    "PersistenceError",
    "RecipeCatalog",
    "ResponseUnparseable",
    "UploadStorage",
    "WorkerError",
    "WorkerExecutionFailed",
    "WorkerInvoker",
    "WorkerOutcome",
    "WorkerProfile",
    "WorkerReportedFailure",
    "WorkerSpawnFailed",
    "WorkerTimeout",
]
