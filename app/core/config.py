"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the job dispatcher and the
operator scripts share one configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.clients.worker_process import InputEncoding, WorkerProfile

_ENV_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


class WorkerSettings(BaseSettings):
    """Configuration for the out-of-process detection and recommendation workers."""

    model_config = _ENV_CONFIG

    python_command: str = Field(
        "python3", validation_alias=AliasChoices("PYTHON_COMMAND", "python_command")
    )
    script_root: Path = Field(
        Path("ai"),
        validation_alias=AliasChoices("AI_SCRIPT_PATH", "script_root"),
        description="Working directory the worker scripts are launched from.",
    )
    detection_script: str = Field(
        "detectors/main.py",
        validation_alias=AliasChoices("DETECTION_SCRIPT", "detection_script"),
    )
    recommendation_script: str = Field(
        "recsys/main.py",
        validation_alias=AliasChoices("RECOMMENDATION_SCRIPT", "recommendation_script"),
    )
    detection_timeout_seconds: float = Field(
        30.0,
        validation_alias=AliasChoices(
            "DETECTION_TIMEOUT_SECONDS", "detection_timeout_seconds"
        ),
    )
    recommendation_timeout_seconds: float = Field(
        180.0,
        validation_alias=AliasChoices(
            "RECOMMENDATION_TIMEOUT_SECONDS", "recommendation_timeout_seconds"
        ),
        description="Recommendation workers load large models, so allow minutes.",
    )
    kill_grace_seconds: float = Field(
        2.0,
        validation_alias=AliasChoices("WORKER_KILL_GRACE_SECONDS", "kill_grace_seconds"),
    )
    max_concurrency: int = Field(
        4,
        ge=0,
        validation_alias=AliasChoices("WORKER_MAX_CONCURRENCY", "max_concurrency"),
        description="Upper bound on simultaneous worker processes; 0 disables it.",
    )

    @field_validator(
        "detection_timeout_seconds",
        "recommendation_timeout_seconds",
        "kill_grace_seconds",
    )
    @classmethod
    def _require_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    def detection_profile(self) -> WorkerProfile:
        """Short-lived profile: raw image bytes in, detections out."""
        return WorkerProfile(
            name="detection",
            command=(self.python_command, self.detection_script),
            working_directory=self.script_root,
            encoding=InputEncoding.BYTES,
            timeout_seconds=self.detection_timeout_seconds,
        )

    def recommendation_profile(self) -> WorkerProfile:
        """Long-lived profile: JSON request in, ranked recipes out."""
        return WorkerProfile(
            name="recommendation",
            command=(self.python_command, self.recommendation_script),
            working_directory=self.script_root,
            encoding=InputEncoding.JSON,
            timeout_seconds=self.recommendation_timeout_seconds,
        )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _ENV_CONFIG

    environment: str = Field(
        "development", validation_alias=AliasChoices("APP_ENV", "environment")
    )
    log_level: str = Field(
        "INFO", validation_alias=AliasChoices("APP_LOG_LEVEL", "log_level")
    )
    log_file: Optional[Path] = Field(
        None,
        validation_alias=AliasChoices("APP_LOG_FILE", "log_file"),
        description="Optional file that mirrors the stdout log stream.",
    )
    database_path: Path = Field(
        Path("data/recipe_ai.db"),
        validation_alias=AliasChoices("DATABASE_PATH", "database_path"),
    )
    upload_dir: Path = Field(
        Path("uploads/analysis_images"),
        validation_alias=AliasChoices("UPLOAD_DIR", "upload_dir"),
    )
    upload_max_bytes: int = Field(
        10 * 1024 * 1024,
        gt=0,
        validation_alias=AliasChoices("UPLOAD_MAX_BYTES", "upload_max_bytes"),
    )
    recommendation_candidate_limit: int = Field(
        200,
        gt=0,
        validation_alias=AliasChoices(
            "RECOMMENDATION_CANDIDATE_LIMIT", "recommendation_candidate_limit"
        ),
    )
    shutdown_grace_seconds: float = Field(
        5.0,
        ge=0,
        validation_alias=AliasChoices("SHUTDOWN_GRACE_SECONDS", "shutdown_grace_seconds"),
        description="How long shutdown waits for in-flight analysis jobs.",
    )
    worker: WorkerSettings = Field(default_factory=WorkerSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "WorkerSettings",
    "get_settings",
]
