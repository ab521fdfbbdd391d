"""Tests for the configuration check script."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from scripts import check_env

WORKER_ENV_KEYS = [
    "PYTHON_COMMAND",
    "AI_SCRIPT_PATH",
    "DETECTION_SCRIPT",
    "RECOMMENDATION_SCRIPT",
    "DETECTION_TIMEOUT_SECONDS",
    "RECOMMENDATION_TIMEOUT_SECONDS",
]


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_worker_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in WORKER_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.mark.parametrize("command", ["check", "workers"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"

    exit_code = check_env.main([command, "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_check_accepts_valid_settings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_worker_env(monkeypatch)
    _write_env(env_file, DETECTION_TIMEOUT_SECONDS="45", WORKER_MAX_CONCURRENCY="2")

    assert check_env.main(["check", "--env-file", str(env_file)]) == check_env.EXIT_OK


def test_validation_failure_for_non_positive_timeout(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_worker_env(monkeypatch)
    _write_env(env_file, RECOMMENDATION_TIMEOUT_SECONDS="0")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_workers_reports_missing_scripts(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    ai_root = tmp_path / "ai"
    (ai_root / "detectors").mkdir(parents=True)
    (ai_root / "detectors" / "main.py").write_text("print('{}')\n", encoding="utf-8")

    _clear_worker_env(monkeypatch)
    _write_env(env_file, PYTHON_COMMAND=sys.executable, AI_SCRIPT_PATH=str(ai_root))

    exit_code = check_env.main(["workers", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_WORKER_ERROR

    (ai_root / "recsys").mkdir()
    (ai_root / "recsys" / "main.py").write_text("print('{}')\n", encoding="utf-8")

    exit_code = check_env.main(["workers", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_OK


def test_workers_reports_missing_interpreter(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_worker_env(monkeypatch)
    _write_env(
        env_file,
        PYTHON_COMMAND=str(tmp_path / "no-such-python"),
        AI_SCRIPT_PATH=str(tmp_path),
    )

    exit_code = check_env.main(["workers", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_WORKER_ERROR
