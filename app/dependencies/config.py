"""
FastAPI dependency exposing the cached application settings to route handlers.
"""

from fastapi import Depends

from app.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    """Settings seen by request handlers; tests override this to shrink limits."""
    return get_settings()


SettingsDependency = Depends(get_app_settings)

__all__ = ["SettingsDependency", "get_app_settings"]
