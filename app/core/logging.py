"""
Logging utilities for the FastAPI application and the background job dispatcher.

Provides a consistent logging format and configuration.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Configure root logging, optionally mirroring records into ``log_file``."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level.upper(),
        format=_LOG_FORMAT,
        handlers=handlers,
    )


__all__ = ["configure_logging"]
