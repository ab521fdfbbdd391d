"""Pytest configuration shared across the suite."""

import sys
import textwrap
from pathlib import Path

import pytest

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from app.clients.worker_process import InputEncoding, WorkerProfile


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def make_worker(tmp_path: Path):
    """Write a small Python worker script and return a profile that runs it."""

    def _make(
        source: str,
        *,
        name: str = "test",
        encoding: InputEncoding = InputEncoding.JSON,
        timeout_seconds: float = 10.0,
    ) -> WorkerProfile:
        script = tmp_path / f"{name}_worker.py"
        script.write_text(textwrap.dedent(source), encoding="utf-8")
        return WorkerProfile(
            name=name,
            command=(sys.executable, str(script)),
            encoding=encoding,
            timeout_seconds=timeout_seconds,
            working_directory=tmp_path,
        )

    return _make
