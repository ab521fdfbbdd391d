"""Local filesystem storage for uploaded analysis images."""

from __future__ import annotations

import re
from pathlib import Path
from uuid import uuid4

_SAFE_SEGMENT = re.compile(r"[^A-Za-z0-9_.-]")


class InputUnavailable(RuntimeError):
    """Raised when a stored input payload cannot be read back."""


class UploadStorage:
    """Persist uploads under ``root/<owner>/`` and hand back their path as the input ref."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def save(self, *, owner_id: str, filename: str, data: bytes) -> str:
        owner_dir = self._root / (_SAFE_SEGMENT.sub("_", owner_id) or "anonymous")
        owner_dir.mkdir(parents=True, exist_ok=True)
        suffix = Path(filename).suffix.lower()
        if not re.fullmatch(r"\.[a-z0-9]{1,8}", suffix):
            suffix = ""
        target = owner_dir / f"image-{uuid4().hex}{suffix}"
        target.write_bytes(data)
        return str(target)

    def read_bytes(self, input_ref: str) -> bytes:
        try:
            return Path(input_ref).read_bytes()
        except OSError as exc:
            raise InputUnavailable(f"Could not read the uploaded image: {exc}") from exc

    def release(self, input_ref: str) -> None:
        """Delete a stored input. A file that is already gone is not an error."""
        Path(input_ref).unlink(missing_ok=True)


__all__ = ["InputUnavailable", "UploadStorage"]
