"""Utility for verifying that the service configuration is intact.

The tool performs two checks:

1. ``check`` instantiates ``AppSettings`` from the provided ``.env`` file,
   surfacing malformed entries (for example a non-positive worker timeout)
   before the service starts failing.
2. ``workers`` additionally confirms that each worker profile can actually be
   launched: the interpreter resolves on ``PATH`` and the script exists under
   the configured working directory.

Example usages::

    python -m scripts.check_env check --env-file /opt/recipe-ai/.env
    python -m scripts.check_env workers --env-file /opt/recipe-ai/.env
"""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from app.core.config import AppSettings, WorkerSettings
from app.clients.worker_process import WorkerProfile

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_WORKER_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _load_settings(env_file: Path) -> AppSettings:
    """Build settings strictly from the supplied env file and the process environment."""
    return AppSettings(
        _env_file=env_file,
        worker=WorkerSettings(_env_file=env_file),
    )


def _profile_problems(profile: WorkerProfile) -> list[str]:
    problems: list[str] = []
    executable, script = profile.command[0], profile.command[-1]
    if shutil.which(executable) is None:
        problems.append(f"{profile.name}: executable {executable!r} was not found on PATH")
    root = profile.working_directory or Path.cwd()
    if not root.is_dir():
        problems.append(f"{profile.name}: working directory {root} does not exist")
    elif not (root / script).is_file():
        problems.append(f"{profile.name}: script {root / script} does not exist")
    return problems


def _check_workers(settings: AppSettings) -> int:
    profiles = [
        settings.worker.detection_profile(),
        settings.worker.recommendation_profile(),
    ]
    problems = [problem for profile in profiles for problem in _profile_problems(profile)]
    if problems:
        print("Worker configuration problems:", file=sys.stderr)
        for problem in problems:
            print(f"  - {problem}", file=sys.stderr)
        return EXIT_WORKER_ERROR
    for profile in profiles:
        print(
            f"{profile.name}: {' '.join(profile.command)} "
            f"(timeout {profile.timeout_seconds:g}s) OK"
        )
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate service settings and worker launch configuration."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings only.",
    )
    add_common_arguments(check_parser)

    workers_parser = subparsers.add_parser(
        "workers",
        help="Validate settings and confirm every worker can be launched.",
    )
    add_common_arguments(workers_parser)

    return parser


def _ensure_env_file(env_file: Path) -> None:
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file

    try:
        _ensure_env_file(env_file)
        settings = _load_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    command: str = args.command
    handlers: dict[str, Callable[[], int]] = {
        "check": lambda: EXIT_OK,
        "workers": lambda: _check_workers(settings),
    }
    return handlers[command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
