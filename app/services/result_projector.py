"""Normalize worker output into identifier lists and resolve them for display."""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Iterable, Mapping, Protocol, Sequence

from app.schemas import Detection, ResolvedIngredient

logger = logging.getLogger(__name__)

_RECIPE_ID_KEYS = ("recipeId", "recipe_id", "id")


class IngredientResolver(Protocol):
    def resolve(self, ids: Sequence[int]) -> list[ResolvedIngredient]:
        ...


class StoredResultFormat(str, Enum):
    """Shapes a completed job's ``result`` column has held over time."""

    EMPTY = "empty"
    IDENTIFIERS = "identifiers"  # [17, 49, 7]
    DETECTIONS = "detections"  # [{"classId": 17, "label": "eggplant", ...}, ...]


def unique_in_order(values: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    ordered: list[int] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


class ResultProjector:
    """Turn raw worker payloads into canonical id lists and display records."""

    def __init__(self, catalog: IngredientResolver) -> None:
        self._catalog = catalog

    def detection_ids(self, detections: Iterable[Detection]) -> list[int]:
        """Ingredient ids in first-seen order, duplicates removed."""
        return unique_in_order(detection.class_id for detection in detections)

    def classify_stored(self, raw: Any) -> tuple[StoredResultFormat, list[Any]]:
        if raw is None:
            return StoredResultFormat.EMPTY, []
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                logger.warning("Stored analysis result is not valid JSON; treating as empty")
                return StoredResultFormat.EMPTY, []
            return self.classify_stored(raw)
        if not isinstance(raw, list) or not raw:
            return StoredResultFormat.EMPTY, []
        if isinstance(raw[0], Mapping):
            return StoredResultFormat.DETECTIONS, raw
        return StoredResultFormat.IDENTIFIERS, raw

    def normalize_stored(self, raw: Any) -> list[int]:
        """Map either stored result shape to the same deduplicated id list."""
        fmt, items = self.classify_stored(raw)
        if fmt is StoredResultFormat.DETECTIONS:
            candidates = (
                _as_int(item.get("classId")) for item in items if isinstance(item, Mapping)
            )
        else:
            candidates = (_as_int(item) for item in items)
        return unique_in_order(value for value in candidates if value is not None)

    def recommendation_ids(self, recommendations: Iterable[Any]) -> list[int]:
        """Recipe ids from bare ints or objects keyed by ``recipeId``/``recipe_id``/``id``."""
        ids: list[int] = []
        for entry in recommendations:
            if isinstance(entry, Mapping):
                value = next(
                    (entry[key] for key in _RECIPE_ID_KEYS if entry.get(key) is not None),
                    None,
                )
            else:
                value = entry
            recipe_id = _as_int(value)
            if recipe_id is not None:
                ids.append(recipe_id)
        return unique_in_order(ids)

    async def resolve(self, ids: Sequence[int]) -> list[ResolvedIngredient]:
        if not ids:
            return []
        return await asyncio.to_thread(self._catalog.resolve, list(ids))


__all__ = ["ResultProjector", "StoredResultFormat", "unique_in_order"]
