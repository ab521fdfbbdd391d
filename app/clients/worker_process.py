"""
Subprocess runner for the out-of-process AI workers.

Each call spawns exactly one worker, feeds it the whole payload on stdin,
collects stdout/stderr, enforces a timeout and returns the worker's JSON
document. Failures surface as :class:`WorkerError` subclasses whose messages
are safe to show to end users.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Optional

logger = logging.getLogger(__name__)

_OUTPUT_PREVIEW_CHARS = 500


class InputEncoding(str, Enum):
    """How a worker expects its stdin payload to be encoded."""

    BYTES = "bytes"
    JSON = "json"


@dataclass(frozen=True, slots=True)
class WorkerProfile:
    """Command, encoding and timeout for one kind of worker."""

    name: str
    command: tuple[str, ...]
    encoding: InputEncoding
    timeout_seconds: float
    working_directory: Optional[Path] = None


@dataclass(slots=True)
class WorkerOutcome:
    """Raw result of one finished worker process."""

    exit_code: int
    stdout: bytes
    stderr: bytes
    elapsed_seconds: float


class WorkerError(RuntimeError):
    """Base class for failures while running a worker process."""


class WorkerSpawnFailed(WorkerError):
    """The worker executable could not be started."""


class WorkerExecutionFailed(WorkerError):
    """The worker exited with a non-zero status."""

    def __init__(self, message: str, *, exit_code: int, stderr: str) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class WorkerTimeout(WorkerError):
    """The worker did not finish within its profile timeout."""

    def __init__(self, message: str, *, timeout_seconds: float, elapsed_seconds: float) -> None:
        super().__init__(message)
        self.timeout_seconds = timeout_seconds
        self.elapsed_seconds = elapsed_seconds


class ResponseUnparseable(WorkerError):
    """The worker exited cleanly but its stdout is not a usable JSON document."""

    def __init__(self, message: str, *, preview: str = "") -> None:
        super().__init__(message)
        self.preview = preview


class WorkerReportedFailure(WorkerError):
    """The worker answered with ``success: false``."""


class WorkerInvoker:
    """Spawn one worker process per request, at most ``max_concurrency`` at once."""

    def __init__(
        self,
        *,
        max_concurrency: int | None = None,
        kill_grace_seconds: float = 2.0,
    ) -> None:
        self._semaphore = (
            asyncio.Semaphore(max_concurrency) if max_concurrency else None
        )
        self._kill_grace_seconds = kill_grace_seconds

    async def invoke(self, profile: WorkerProfile, payload: Any) -> dict[str, Any]:
        """Run ``profile`` against ``payload`` and return the parsed stdout document.

        The profile's timeout starts once a concurrency slot is acquired and the
        child is spawned; time spent queued behind ``max_concurrency`` is not counted.
        """
        data = encode_payload(profile.encoding, payload)
        async with self._slot():
            outcome = await self._run(profile, data)
        return _parse_outcome(profile, outcome)

    @contextlib.asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        if self._semaphore is None:
            yield
            return
        async with self._semaphore:
            yield

    async def _run(self, profile: WorkerProfile, data: bytes) -> WorkerOutcome:
        logger.info(
            "Starting %s worker: %s (%d bytes on stdin)",
            profile.name,
            " ".join(profile.command),
            len(data),
        )
        started = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *profile.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(profile.working_directory) if profile.working_directory else None,
            )
        except OSError as exc:
            logger.error("Could not start %s worker: %s", profile.name, exc)
            raise WorkerSpawnFailed(
                f"Could not start the {profile.name} worker: {exc}"
            ) from exc

        try:
            # communicate() drains stdout/stderr while feeding stdin and ignores
            # a broken pipe when the worker exits without reading its input.
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input=data),
                timeout=profile.timeout_seconds,
            )
        except asyncio.TimeoutError:
            elapsed = time.monotonic() - started
            await self._terminate(process)
            logger.error(
                "%s worker timed out after %.1fs (limit %.1fs)",
                profile.name,
                elapsed,
                profile.timeout_seconds,
            )
            raise WorkerTimeout(
                f"The {profile.name} worker timed out after "
                f"{profile.timeout_seconds:g} seconds.",
                timeout_seconds=profile.timeout_seconds,
                elapsed_seconds=elapsed,
            ) from None
        finally:
            if process.returncode is None:
                await self._terminate(process)

        elapsed = time.monotonic() - started
        logger.info(
            "%s worker exited with code %s after %dms",
            profile.name,
            process.returncode,
            int(elapsed * 1000),
        )
        return WorkerOutcome(
            exit_code=process.returncode,
            stdout=stdout,
            stderr=stderr,
            elapsed_seconds=elapsed,
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM, wait briefly, then SIGKILL; always reap the child."""
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=self._kill_grace_seconds)
            return
        except asyncio.TimeoutError:
            logger.warning(
                "Worker pid %s ignored SIGTERM for %.1fs; killing it",
                process.pid,
                self._kill_grace_seconds,
            )
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()


def encode_payload(encoding: InputEncoding, payload: Any) -> bytes:
    """Serialize ``payload`` the way a worker with ``encoding`` expects it."""
    if encoding is InputEncoding.BYTES:
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise TypeError(
                f"Byte-encoded workers need a bytes payload, got {type(payload).__name__}"
            )
        return bytes(payload)
    if isinstance(payload, (bytes, bytearray, memoryview)):
        raise TypeError("JSON-encoded workers need a structured payload, not raw bytes")
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def _parse_outcome(profile: WorkerProfile, outcome: WorkerOutcome) -> dict[str, Any]:
    if outcome.exit_code != 0:
        stderr_text = outcome.stderr.decode("utf-8", errors="replace").strip()
        logger.error(
            "%s worker failed with exit code %s: %s",
            profile.name,
            outcome.exit_code,
            stderr_text[:_OUTPUT_PREVIEW_CHARS],
        )
        raise WorkerExecutionFailed(
            stderr_text or f"An error occurred while running the {profile.name} worker.",
            exit_code=outcome.exit_code,
            stderr=stderr_text,
        )

    raw_text = outcome.stdout.decode("utf-8", errors="replace")
    preview = raw_text[:_OUTPUT_PREVIEW_CHARS]
    try:
        document = json.loads(outcome.stdout.decode("utf-8").strip())
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.error(
            "Could not parse %s worker output (%s): %s", profile.name, exc, preview
        )
        raise ResponseUnparseable(
            f"Could not parse the {profile.name} worker response.", preview=preview
        ) from exc

    if not isinstance(document, dict):
        logger.error("%s worker returned a non-object document: %s", profile.name, preview)
        raise ResponseUnparseable(
            f"Could not parse the {profile.name} worker response.", preview=preview
        )

    # Older workers report ``statusCode``; the API calls it ``result_code``.
    if document.get("statusCode") is not None:
        document["result_code"] = document["statusCode"]
    return document


__all__ = [
    "InputEncoding",
    "ResponseUnparseable",
    "WorkerError",
    "WorkerExecutionFailed",
    "WorkerInvoker",
    "WorkerOutcome",
    "WorkerProfile",
    "WorkerReportedFailure",
    "WorkerSpawnFailed",
    "WorkerTimeout",
    "encode_payload",
]
